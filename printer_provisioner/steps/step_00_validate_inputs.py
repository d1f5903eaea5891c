from __future__ import annotations

import logging

from ..context import RunContext
from ..errors import ConfigurationError
from ..pipeline import StageResult

logger = logging.getLogger(__name__)


class ValidateInputsStep:
    step_id = "00_validate_inputs"

    def run(self, ctx: RunContext) -> StageResult:
        req = ctx.request
        logger.info(
            "Request: printer=%r driver=%r port=%r ip=%r inf=%r source=%s",
            req.printer_name,
            req.driver_name,
            req.port_name,
            req.printer_ip,
            req.inf_file_name,
            ctx.source_dir,
        )

        inf_path = ctx.source_dir / req.inf_file_name
        if not inf_path.is_file():
            raise ConfigurationError(f"INF file not found: {inf_path}")

        ctx.state.inf_path = inf_path.resolve()
        return StageResult.success(self.step_id, f"INF found at {ctx.state.inf_path}")
