from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .config import ProvisionConfig
from .lib.certstore import CertificateStore
from .lib.command import CommandRunner, run_cmd
from .lib.spooler import PrintSpooler
from .models import CertificateRecord, DriverRecord, InstallationRequest, PortRecord, PortSpec, PrinterRecord


@dataclass
class RunState:
    """What each stage produced, for the stages after it.

    Nothing here survives the process; every stage re-reads the OS.
    """

    inf_path: Optional[Path] = None
    certificates: List[CertificateRecord] = field(default_factory=list)
    certificates_added: int = 0
    port_spec: Optional[PortSpec] = None
    driver: Optional[DriverRecord] = None
    port: Optional[PortRecord] = None
    printer: Optional[PrinterRecord] = None


@dataclass
class RunContext:
    request: InstallationRequest
    config: ProvisionConfig
    source_dir: Path
    spooler: PrintSpooler
    certstore: CertificateStore
    run: CommandRunner = run_cmd
    sleeper: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic
    state: RunState = field(default_factory=RunState)

    @property
    def inf_path(self) -> Path:
        return self.state.inf_path or (self.source_dir / self.request.inf_file_name)
