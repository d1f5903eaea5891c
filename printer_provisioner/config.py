from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigurationError
from .models import VendorTool

DEFAULT_CONFIG_NAME = "printer_provisioner.yaml"

# Tool A stages the driver itself and creates the port in one syntax.
# Tool B has two documented command-line syntaxes across releases; order matters.
DEFAULT_VENDOR_TOOLS: Dict[str, Dict[str, Any]] = {
    VendorTool.TOOL_A.value: {
        "binary": "AdvPortConfig.exe",
        "prestage_args": ["/stagedriver", "{inf}"],
        "create_args": ["/addport", "/name:{port}", "/ip:{ip}"],
        "alternate_create_args": [],
    },
    VendorTool.TOOL_B.value: {
        "binary": "PortMonitorSetup.exe",
        "prestage_args": ["-installdriver", "{inf}"],
        "create_args": ["-createport", "-name", "{port}", "-ip", "{ip}"],
        "alternate_create_args": [["/create", "/port={port}", "/host={ip}"]],
    },
}

DEFAULT_MATCH_FRAGMENTS = [
    "Kyocera",
    "TOSHIBA",
    "Xerox",
    "Ricoh",
    "Canon",
    "Konica Minolta",
    "Lexmark",
    "Sharp",
]


@dataclass(frozen=True)
class ToolProfile:
    tool: VendorTool
    binary: str
    prestage_args: List[str]
    create_args: List[str]
    alternate_create_args: List[List[str]] = field(default_factory=list)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"config section {name!r} must be a mapping")
    return value


def _str_list(value: Any, *, key: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"config key {key!r} must be a list")
    return [str(v) for v in value]


@dataclass(frozen=True)
class ProvisionConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def advanced_prefix(self) -> str:
        return str(_section(self.raw, "ports").get("advanced_prefix") or "ADV_")

    @property
    def standard_prefix(self) -> str:
        return str(_section(self.raw, "ports").get("standard_prefix") or "IP_")

    @property
    def match_fragments(self) -> List[str]:
        drivers = _section(self.raw, "drivers")
        if "match_fragments" not in drivers:
            return list(DEFAULT_MATCH_FRAGMENTS)
        return _str_list(drivers.get("match_fragments"), key="drivers.match_fragments")

    @property
    def certificate_patterns(self) -> List[str]:
        certs = _section(self.raw, "certificates")
        return _str_list(certs.get("patterns"), key="certificates.patterns") or ["*.cat", "*.cer", "*.crt"]

    @property
    def certificate_store(self) -> str:
        return str(_section(self.raw, "certificates").get("store") or "TrustedPublisher")

    @property
    def vendor_markers(self) -> List[str]:
        certs = _section(self.raw, "certificates")
        return _str_list(certs.get("vendor_markers"), key="certificates.vendor_markers") or ["Microsoft"]

    @property
    def poll_interval(self) -> float:
        return float(_section(self.raw, "timing").get("poll_interval", 1.0))

    @property
    def certificate_timeout(self) -> float:
        return float(_section(self.raw, "timing").get("certificate_timeout", 10.0))

    @property
    def removal_timeout(self) -> float:
        return float(_section(self.raw, "timing").get("removal_timeout", 15.0))

    @property
    def prestage_delay(self) -> float:
        return float(_section(self.raw, "timing").get("prestage_delay", 5.0))

    @property
    def powershell(self) -> str:
        return str(_section(self.raw, "tools").get("powershell") or "powershell.exe")

    @property
    def pnputil(self) -> str:
        return str(_section(self.raw, "tools").get("pnputil") or "pnputil.exe")

    @property
    def certutil(self) -> str:
        return str(_section(self.raw, "tools").get("certutil") or "certutil.exe")

    def tool_profile(self, tool: VendorTool) -> ToolProfile:
        merged = dict(DEFAULT_VENDOR_TOOLS[tool.value])
        merged.update(_section(_section(self.raw, "vendor_tools"), tool.value))
        alternates = merged.get("alternate_create_args") or []
        if not isinstance(alternates, list) or not all(isinstance(a, list) for a in alternates):
            raise ConfigurationError(f"vendor_tools.{tool.value}.alternate_create_args must be a list of lists")
        return ToolProfile(
            tool=tool,
            binary=str(merged.get("binary") or ""),
            prestage_args=_str_list(merged.get("prestage_args"), key=f"vendor_tools.{tool.value}.prestage_args"),
            create_args=_str_list(merged.get("create_args"), key=f"vendor_tools.{tool.value}.create_args"),
            alternate_create_args=[[str(v) for v in a] for a in alternates],
        )


def load_config(path: Optional[str] = None, *, source_dir: Optional[Path] = None) -> ProvisionConfig:
    """Load the YAML config.

    An explicit path must exist. Without one, ``printer_provisioner.yaml`` in the
    source directory is used when present; otherwise defaults apply.
    """

    if path is not None:
        p = Path(path)
        if not p.exists():
            raise ConfigurationError(f"Config file not found: {p}")
    elif source_dir is not None and (source_dir / DEFAULT_CONFIG_NAME).exists():
        p = source_dir / DEFAULT_CONFIG_NAME
    else:
        return ProvisionConfig()

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigurationError("config must be YAML")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file {p} is not valid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{p.name} must contain a mapping/object")

    return ProvisionConfig(raw=raw)
