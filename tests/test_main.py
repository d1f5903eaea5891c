"""Tests for the command-line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeCertStore, FakeSpooler
from printer_provisioner import main as main_mod
from printer_provisioner.models import PortKind, PortRecord, PrinterRecord

DRIVER = "Kyocera TASKalfa 3554ci KX"


def _argv(source_dir: Path, log_dir: Path, **overrides: str) -> list:
    values = {
        "--port-name": "IP_10.0.0.50",
        "--printer-ip": "10.0.0.50",
        "--printer-name": "Office Printer",
        "--driver-name": DRIVER,
        "--inf-file": "OEMSETUP.INF",
        "--source-dir": str(source_dir),
        "--log-dir": str(log_dir),
    }
    values.update(overrides)
    argv = []
    for k, v in values.items():
        argv += [k, v]
    return argv


def test_missing_inf_exits_1_and_logs_path(source_dir, tmp_path, capsys) -> None:
    log_dir = tmp_path / "logs"

    code = main_mod.main(_argv(source_dir, log_dir, **{"--inf-file": "absent.inf"}))

    assert code == 1
    log_text = (log_dir / "Office Printer.log").read_text(encoding="utf-8")
    assert str(source_dir / "absent.inf") in log_text
    assert "Printer installation failed" in capsys.readouterr().err


def test_empty_parameter_exits_1(source_dir, tmp_path) -> None:
    assert main_mod.main(_argv(source_dir, tmp_path, **{"--driver-name": " "})) == 1


def test_configured_printer_exits_0(source_dir, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    spooler = FakeSpooler()
    spooler.drivers.add(DRIVER)
    spooler.ports["IP_10.0.0.50"] = PortRecord("IP_10.0.0.50", PortKind.STANDARD, "10.0.0.50")
    spooler.printers["Office Printer"] = PrinterRecord("Office Printer", DRIVER, "IP_10.0.0.50")
    monkeypatch.setattr(main_mod, "PrintSpooler", lambda **kw: spooler)
    monkeypatch.setattr(main_mod, "CertificateStore", lambda **kw: FakeCertStore())

    code = main_mod.main(_argv(source_dir, tmp_path))

    assert code == 0
    assert spooler.mutations == []
    log_text = (tmp_path / "Office Printer.log").read_text(encoding="utf-8")
    assert "no changes needed" in log_text
    assert "Result: SUCCESS" in log_text


def test_log_is_appended_across_runs(source_dir, tmp_path) -> None:
    argv = _argv(source_dir, tmp_path, **{"--inf-file": "absent.inf"})

    main_mod.main(argv)
    main_mod.main(argv)

    log_text = (tmp_path / "Office Printer.log").read_text(encoding="utf-8")
    assert log_text.count("Logging initialized") == 2


def test_handoff_returns_child_exit_code(source_dir, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_ensure(argv, *, reexecuted):
        seen["argv"] = argv
        return 7

    monkeypatch.setattr(main_mod, "ensure_execution_context", fake_ensure)

    assert main_mod.main(_argv(source_dir, tmp_path)) == 7
    assert "--source-dir" in seen["argv"]


def test_missing_arguments_exit_1(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main_mod.main([])

    assert exc.value.code == 1
    assert "--port-name" in capsys.readouterr().err
