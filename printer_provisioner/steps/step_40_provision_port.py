from __future__ import annotations

import logging
from typing import Optional

from ..context import RunContext
from ..errors import ProvisioningError
from ..lib.convergence import settle
from ..lib.strategies import Strategy, run_strategies
from ..lib.vendor_tools import create_port_variants, prestage_argv, tool_path
from ..models import PortKind, PortRecord, PortSpec
from ..pipeline import StageResult

logger = logging.getLogger(__name__)


class ProvisionPortStep:
    step_id = "40_provision_port"

    def _ensure_standard(self, ctx: RunContext, name: str, ip: str) -> PortRecord:
        existing = ctx.spooler.get_port(name)
        if existing is not None:
            logger.info("Port %s already exists (%s, %s); not recreating", name, existing.kind.value, existing.backing_ip)
            return existing
        ctx.spooler.add_tcpip_port(name, ip)
        logger.info("Created standard TCP/IP port %s -> %s", name, ip)
        return PortRecord(name=name, kind=PortKind.STANDARD, backing_ip=ip)

    def _kept_fallback(self, ctx: RunContext, spec: PortSpec) -> Optional[PortRecord]:
        """The standard port an earlier run fell back to, if the printer still uses it."""
        if spec.standard_name.casefold() == spec.port_name.casefold():
            return None
        standard = ctx.spooler.get_port(spec.standard_name)
        if standard is None:
            return None
        printer = ctx.spooler.get_printer(ctx.request.printer_name)
        if printer is None or printer.port_name.casefold() != spec.standard_name.casefold():
            return None
        return standard

    def _create_advanced(self, ctx: RunContext, spec: PortSpec) -> bool:
        if spec.tool is None:
            raise ProvisioningError(f"Advanced port {spec.port_name} planned without a vendor tool")
        profile = ctx.config.tool_profile(spec.tool)
        binary = tool_path(ctx.source_dir, profile)
        driver_name = ctx.state.driver.driver_name if ctx.state.driver else ctx.request.driver_name

        try:
            ctx.run(prestage_argv(profile, binary, inf_path=ctx.inf_path, driver_name=driver_name))
        except ProvisioningError as e:
            logger.warning("Driver pre-stage via %s failed: %s", spec.tool.value, e)
            return False
        # The tool gives no completion signal for its driver work.
        settle(ctx.config.prestage_delay, reason=f"{spec.tool.value} driver pre-stage", sleeper=ctx.sleeper)

        variants = create_port_variants(profile, binary, port_name=spec.port_name, ip=spec.resolved_ip)
        creation = run_strategies(
            [Strategy(name, lambda argv=argv: ctx.run(argv, check=False)) for name, argv in variants],
            label=f"{spec.tool.value} create port {spec.port_name}",
            recheck=lambda: ctx.spooler.get_port(spec.port_name) is not None,
        )
        if not creation.succeeded:
            logger.warning("Advanced port creation failed: %s", creation.last_reason)
        return creation.succeeded

    def run(self, ctx: RunContext) -> StageResult:
        spec = ctx.state.port_spec
        if spec is None:
            raise ProvisioningError("No port plan; plan step did not run")

        existing = ctx.spooler.get_port(spec.port_name)
        if existing is not None:
            logger.info("Port %s already exists; skipping creation", spec.port_name)
            ctx.state.port = existing
            return StageResult.success(self.step_id, f"port {spec.port_name} already present")

        if spec.kind is PortKind.STANDARD:
            ctx.state.port = self._ensure_standard(ctx, spec.port_name, spec.resolved_ip)
            return StageResult.success(self.step_id, f"standard port {spec.port_name}")

        kept = self._kept_fallback(ctx, spec)
        if kept is not None:
            logger.info(
                "Printer %r already uses fallback port %s; not retrying %s",
                ctx.request.printer_name,
                kept.name,
                spec.tool.value if spec.tool else "vendor tool",
            )
            ctx.state.port = kept
            return StageResult.fallback(self.step_id, f"keeping standard port {kept.name} from an earlier fallback")

        if self._create_advanced(ctx, spec):
            ctx.state.port = PortRecord(name=spec.port_name, kind=PortKind.ADVANCED, backing_ip=spec.resolved_ip)
            logger.info("Created advanced port %s -> %s via %s", spec.port_name, spec.resolved_ip, spec.tool.value)
            return StageResult.success(self.step_id, f"advanced port {spec.port_name}")

        logger.info("Falling back to standard TCP/IP port %s", spec.standard_name)
        ctx.state.port = self._ensure_standard(ctx, spec.standard_name, spec.resolved_ip)
        return StageResult.fallback(
            self.step_id, f"advanced port failed; using standard port {spec.standard_name}"
        )
