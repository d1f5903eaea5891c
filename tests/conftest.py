from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

import pytest

from printer_provisioner.config import ProvisionConfig
from printer_provisioner.context import RunContext
from printer_provisioner.errors import CertificateStoreError, ToolInvocationError
from printer_provisioner.lib.command import CmdResult
from printer_provisioner.logging_utils import reset_logging
from printer_provisioner.models import CertificateRecord, InstallationRequest, PortKind, PortRecord, PrinterRecord


class ScriptedRunner:
    """Stands in for run_cmd. ``handler(argv)`` returns an exit code or a CmdResult."""

    def __init__(self, handler: Optional[Callable[[List[str]], Union[int, CmdResult]]] = None) -> None:
        self.calls: List[List[str]] = []
        self._handler = handler or (lambda argv: 0)

    def __call__(self, argv: Sequence[str], *, check: bool = True, **_: object) -> CmdResult:
        argv_list = list(argv)
        self.calls.append(argv_list)
        out = self._handler(argv_list)
        r = out if isinstance(out, CmdResult) else CmdResult(argv_list, int(out), "", "" if out == 0 else "boom")
        if check and r.returncode != 0:
            raise ToolInvocationError(argv_list, r.returncode, r.stderr)
        return r


class FakeSpooler:
    """In-memory printer/port/driver tables that record every mutation."""

    def __init__(self) -> None:
        self.drivers: Set[str] = set()
        self.ports: Dict[str, PortRecord] = {}
        self.printers: Dict[str, PrinterRecord] = {}
        self.mutations: List[Tuple[str, ...]] = []
        self.add_driver_error = False
        # Simulate a spooler that does not apply what Add-Printer asked for.
        self.printer_override: Optional[PrinterRecord] = None

    def get_printer(self, name: str) -> Optional[PrinterRecord]:
        return self.printers.get(name)

    def list_printers(self) -> List[PrinterRecord]:
        return list(self.printers.values())

    def add_printer(self, name: str, driver_name: str, port_name: str) -> None:
        self.mutations.append(("add_printer", name, driver_name, port_name))
        self.printers[name] = self.printer_override or PrinterRecord(name, driver_name, port_name, "Normal")

    def remove_printer(self, name: str) -> None:
        self.mutations.append(("remove_printer", name))
        self.printers.pop(name, None)

    def get_port(self, name: str) -> Optional[PortRecord]:
        return self.ports.get(name)

    def add_tcpip_port(self, name: str, ip: str) -> None:
        self.mutations.append(("add_tcpip_port", name, ip))
        self.ports[name] = PortRecord(name, PortKind.STANDARD, ip)

    def list_drivers(self) -> List[str]:
        return sorted(self.drivers)

    def has_driver(self, name: str) -> bool:
        return name in self.drivers

    def add_driver(self, name: str) -> None:
        self.mutations.append(("add_driver", name))
        if self.add_driver_error:
            raise ToolInvocationError(["powershell.exe", "Add-PrinterDriver"], 1, "driver not found in store")
        self.drivers.add(name)


class FakeCertStore:
    store_name = "TrustedPublisher"

    def __init__(self) -> None:
        self.signers: Dict[str, Optional[CertificateRecord]] = {}
        self.trusted: Set[str] = set()
        self.install_calls: List[str] = []
        self.fail_install = False

    def read_signer(self, path: Path) -> Optional[CertificateRecord]:
        return self.signers.get(path.name)

    def is_trusted(self, thumbprint: str) -> bool:
        return thumbprint in self.trusted

    def install(self, cert: CertificateRecord) -> str:
        self.install_calls.append(cert.thumbprint)
        if self.fail_install:
            raise CertificateStoreError(f"Could not add {cert.thumbprint}")
        self.trusted.add(cert.thumbprint)
        return "store-handle"


def make_cert(thumbprint: str, subject: str = "CN=Acme Printing", issuer: str = "CN=Acme CA") -> CertificateRecord:
    return CertificateRecord(thumbprint=thumbprint, subject=subject, issuer=issuer, der=b"\x30\x82")


def make_request(**overrides: str) -> InstallationRequest:
    values = dict(
        port_name="IP_10.0.0.50",
        printer_ip="10.0.0.50",
        printer_name="Office Printer",
        driver_name="Kyocera TASKalfa 3554ci KX",
        inf_file_name="OEMSETUP.INF",
    )
    values.update(overrides)
    return InstallationRequest(**values)


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    d = tmp_path / "payload"
    d.mkdir()
    (d / "OEMSETUP.INF").write_text("[Version]\n", encoding="utf-8")
    return d


@pytest.fixture
def spooler() -> FakeSpooler:
    return FakeSpooler()


@pytest.fixture
def certstore() -> FakeCertStore:
    return FakeCertStore()


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def make_ctx(source_dir: Path, spooler: FakeSpooler, certstore: FakeCertStore, runner: ScriptedRunner):
    def _make(request: Optional[InstallationRequest] = None, config: Optional[ProvisionConfig] = None) -> RunContext:
        return RunContext(
            request=request or make_request(),
            config=config or ProvisionConfig(),
            source_dir=source_dir,
            spooler=spooler,  # type: ignore[arg-type]
            certstore=certstore,  # type: ignore[arg-type]
            run=runner,
            sleeper=lambda s: None,
        )

    return _make


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()
