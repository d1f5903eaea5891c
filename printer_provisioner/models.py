from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError


class PortKind(str, Enum):
    STANDARD = "standard"
    ADVANCED = "advanced"


class VendorTool(str, Enum):
    """The two mutually exclusive vendor port-creation tools."""

    TOOL_A = "tool_a"
    TOOL_B = "tool_b"


class DriverState(str, Enum):
    NOT_STAGED = "not_staged"
    STAGED = "staged"
    REGISTERED = "registered"
    ALREADY_EXISTS = "already_exists"


class PrinterState(str, Enum):
    ABSENT = "absent"
    PRESENT_MATCHING = "present_matching"
    PRESENT_DIVERGENT = "present_divergent"


@dataclass(frozen=True)
class InstallationRequest:
    port_name: str
    printer_ip: str
    printer_name: str
    driver_name: str
    inf_file_name: str

    def __post_init__(self) -> None:
        for name in ("port_name", "printer_ip", "printer_name", "driver_name", "inf_file_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{name} is required and must be a non-empty string")
            object.__setattr__(self, name, value.strip())


@dataclass(frozen=True)
class PortSpec:
    kind: PortKind
    resolved_ip: str
    port_name: str
    tool: Optional[VendorTool] = None
    # Port to create when the advanced path has to fall back.
    standard_name: str = ""

    def __post_init__(self) -> None:
        if self.kind is PortKind.ADVANCED and self.tool is None:
            raise ValueError("advanced port requires a vendor tool")
        if self.kind is PortKind.STANDARD and self.tool is not None:
            raise ValueError("standard port must not carry a vendor tool")
        if not self.standard_name:
            object.__setattr__(self, "standard_name", self.port_name)


@dataclass(frozen=True)
class CertificateRecord:
    thumbprint: str
    subject: str
    issuer: str
    trusted: bool = False
    source: Optional[Path] = field(default=None, compare=False)
    der: bytes = field(default=b"", repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "thumbprint", self.thumbprint.replace(" ", "").upper())


@dataclass(frozen=True)
class DriverRecord:
    driver_name: str
    inf_path: Path
    staged: bool
    registered: bool
    state: DriverState = DriverState.NOT_STAGED
    substituted_for: Optional[str] = None


@dataclass(frozen=True)
class PortRecord:
    name: str
    kind: PortKind
    backing_ip: str


@dataclass(frozen=True)
class PrinterRecord:
    name: str
    driver_name: str
    port_name: str
    status: str = ""

    def matches(self, driver_name: str, port_name: str) -> bool:
        # Spooler object names compare case-insensitively.
        return (
            self.driver_name.casefold() == driver_name.casefold()
            and self.port_name.casefold() == port_name.casefold()
        )
