from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..context import RunContext
from ..errors import DriverStagingError, ToolInvocationError
from ..lib.driverstore import staging_strategies
from ..lib.strategies import run_strategies
from ..models import DriverRecord, DriverState
from ..pipeline import StageResult

logger = logging.getLogger(__name__)


def find_fuzzy_driver(requested: str, registered: Sequence[str], fragments: Sequence[str]) -> Optional[str]:
    """Pick the one registered driver from the requested driver's family.

    The family is the set of configured fragments that occur in the requested
    name. A registered driver belongs to it if its name contains one of them.
    Returns None unless exactly one driver qualifies.
    """

    family = [f.casefold() for f in fragments if f and f.casefold() in requested.casefold()]
    if not family:
        return None
    candidates: List[str] = sorted({d for d in registered if any(f in d.casefold() for f in family)})
    if len(candidates) != 1:
        if candidates:
            logger.warning("Ambiguous driver matches for %r: %s", requested, ", ".join(candidates))
        return None
    return candidates[0]


class StageDriverStep:
    """Driver store staging then registration. The store is machine-global."""

    step_id = "30_stage_driver"

    def run(self, ctx: RunContext) -> StageResult:
        spooler = ctx.spooler
        requested = ctx.request.driver_name
        inf_path = ctx.inf_path

        if spooler.has_driver(requested):
            logger.info("Driver %r already registered; skipping staging and registration", requested)
            ctx.state.driver = DriverRecord(
                driver_name=requested,
                inf_path=inf_path,
                staged=True,
                registered=True,
                state=DriverState.ALREADY_EXISTS,
            )
            return StageResult.success(self.step_id, f"driver {requested!r} already present")

        strategies = staging_strategies(
            inf_path,
            run=ctx.run,
            pnputil=ctx.config.pnputil,
            powershell=ctx.config.powershell,
        )
        staging = run_strategies(
            strategies,
            label=f"stage {inf_path.name}",
            recheck=lambda: spooler.has_driver(requested),
        )
        if not staging.succeeded:
            raise DriverStagingError(
                f"Could not stage {inf_path} with any strategy "
                f"({', '.join(a.name for a in staging.attempts)}); last error: {staging.last_reason}"
            )
        logger.info("Driver package staged via %s", staging.winner)

        if spooler.has_driver(requested):
            logger.info("Driver %r registered during staging", requested)
            ctx.state.driver = DriverRecord(
                driver_name=requested,
                inf_path=inf_path,
                staged=True,
                registered=True,
                state=DriverState.REGISTERED,
            )
            return StageResult.success(self.step_id, f"driver {requested!r} staged via {staging.winner}")

        try:
            spooler.add_driver(requested)
        except ToolInvocationError as e:
            logger.warning("Registering driver %r failed: %s", requested, e)
            substitute = find_fuzzy_driver(requested, spooler.list_drivers(), ctx.config.match_fragments)
            if substitute is None:
                raise
            logger.warning("Using registered driver %r in place of %r", substitute, requested)
            ctx.state.driver = DriverRecord(
                driver_name=substitute,
                inf_path=inf_path,
                staged=True,
                registered=True,
                state=DriverState.REGISTERED,
                substituted_for=requested,
            )
            return StageResult.fallback(self.step_id, f"driver {requested!r} substituted by {substitute!r}")

        logger.info("Driver %r registered", requested)
        ctx.state.driver = DriverRecord(
            driver_name=requested,
            inf_path=inf_path,
            staged=True,
            registered=True,
            state=DriverState.REGISTERED,
        )
        return StageResult.success(self.step_id, f"driver {requested!r} staged via {staging.winner} and registered")
