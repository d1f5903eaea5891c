from __future__ import annotations

import ipaddress
import logging
from typing import Sequence

from ..context import RunContext
from ..lib.vendor_tools import TOOL_ORDER, probe_tools
from ..models import InstallationRequest, PortKind, PortSpec, VendorTool
from ..pipeline import StageResult

logger = logging.getLogger(__name__)


def _has_prefix(value: str, prefix: str) -> bool:
    return bool(prefix) and value.upper().startswith(prefix.upper())


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix) :] if _has_prefix(value, prefix) else value


def _looks_like_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def plan_port(
    request: InstallationRequest,
    *,
    advanced_prefix: str,
    standard_prefix: str,
    available_tools: Sequence[VendorTool],
) -> PortSpec:
    """Decide port kind, address and name.

    - The advanced prefix on either the port name or the IP requests an
      advanced port; the address is the IP with the prefix stripped.
    - The IP parameter wins over an address carried in the port name.
    - Advanced needs a vendor tool; Tool A wins over Tool B. With no tool the
      port is a standard TCP/IP port named ``<standard_prefix><ip>``.
    """

    wants_advanced = _has_prefix(request.port_name, advanced_prefix) or _has_prefix(
        request.printer_ip, advanced_prefix
    )
    ip = _strip_prefix(request.printer_ip, advanced_prefix)

    if not wants_advanced:
        return PortSpec(kind=PortKind.STANDARD, resolved_ip=ip, port_name=request.port_name)

    port_part = _strip_prefix(request.port_name, advanced_prefix)
    if _looks_like_ip(port_part) and port_part != ip:
        logger.warning("Port name carries address %s but IP parameter says %s; using %s", port_part, ip, ip)

    standard_name = f"{standard_prefix}{ip}"
    tool = next((t for t in TOOL_ORDER if t in available_tools), None)
    if tool is None:
        return PortSpec(kind=PortKind.STANDARD, resolved_ip=ip, port_name=standard_name)

    return PortSpec(
        kind=PortKind.ADVANCED,
        resolved_ip=ip,
        port_name=port_part or ip,
        tool=tool,
        standard_name=standard_name,
    )


class PlanPortStep:
    step_id = "20_plan_port"

    def run(self, ctx: RunContext) -> StageResult:
        cfg = ctx.config
        req = ctx.request
        tools = probe_tools(ctx.source_dir, cfg)
        spec = plan_port(
            req,
            advanced_prefix=cfg.advanced_prefix,
            standard_prefix=cfg.standard_prefix,
            available_tools=tools,
        )
        ctx.state.port_spec = spec
        logger.info(
            "Port plan: kind=%s name=%s ip=%s tool=%s",
            spec.kind.value,
            spec.port_name,
            spec.resolved_ip,
            spec.tool.value if spec.tool else "none",
        )

        asked_advanced = _has_prefix(req.port_name, cfg.advanced_prefix) or _has_prefix(
            req.printer_ip, cfg.advanced_prefix
        )
        if asked_advanced and spec.kind is PortKind.STANDARD:
            return StageResult.fallback(self.step_id, "advanced port requested but no vendor tool found; using standard")
        return StageResult.success(self.step_id, f"{spec.kind.value} port {spec.port_name}")
