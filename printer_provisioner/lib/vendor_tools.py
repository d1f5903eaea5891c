from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Sequence, Tuple

from ..config import ProvisionConfig, ToolProfile
from ..models import VendorTool

logger = logging.getLogger(__name__)

# Resolution order is fixed: the first tool present wins.
TOOL_ORDER = (VendorTool.TOOL_A, VendorTool.TOOL_B)


def probe_tools(source_dir: Path, config: ProvisionConfig) -> List[VendorTool]:
    """Return the vendor tools whose binary sits in ``source_dir``, in resolution order."""

    found: List[VendorTool] = []
    for tool in TOOL_ORDER:
        binary = config.tool_profile(tool).binary
        if binary and (source_dir / binary).is_file():
            found.append(tool)
    logger.info("Vendor port tools present: %s", ", ".join(t.value for t in found) or "none")
    return found


def tool_path(source_dir: Path, profile: ToolProfile) -> Path:
    return source_dir / profile.binary


def render_args(args: Sequence[str], values: Mapping[str, str]) -> List[str]:
    out: List[str] = []
    for arg in args:
        for key, value in values.items():
            arg = arg.replace("{" + key + "}", value)
        out.append(arg)
    return out


def prestage_argv(profile: ToolProfile, binary: Path, *, inf_path: Path, driver_name: str) -> List[str]:
    return [str(binary), *render_args(profile.prestage_args, {"inf": str(inf_path), "driver": driver_name})]


def create_port_variants(
    profile: ToolProfile,
    binary: Path,
    *,
    port_name: str,
    ip: str,
) -> List[Tuple[str, List[str]]]:
    """Named command lines for creating the port: primary syntax, then alternates."""

    values = {"port": port_name, "ip": ip}
    variants = [("primary", [str(binary), *render_args(profile.create_args, values)])]
    for i, alt in enumerate(profile.alternate_create_args, start=1):
        variants.append((f"alternate-{i}", [str(binary), *render_args(alt, values)]))
    return variants
