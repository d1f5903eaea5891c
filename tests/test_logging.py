"""Tests for the per-printer installation log."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from printer_provisioner.logging_utils import configure_logging, installation_log_path, reset_logging


def test_log_path_uses_temp_dir_and_sanitizes_name() -> None:
    p = installation_log_path('HQ/Floor 2: "Color"')

    assert p.parent == Path(tempfile.gettempdir())
    assert p.name == "HQ_Floor 2_ _Color_.log"


def test_log_path_override() -> None:
    assert installation_log_path("Office", "C:/logs") == Path("C:/logs") / "Office.log"


def test_configure_is_idempotent_and_appends(tmp_path: Path) -> None:
    target = tmp_path / "Office.log"
    target.write_text("earlier run\n", encoding="utf-8")

    first = configure_logging(target, also_console=False)
    second = configure_logging(tmp_path / "other.log", also_console=False)
    logging.getLogger("printer_provisioner.test").info("hello")
    reset_logging()

    assert first == second == target
    text = target.read_text(encoding="utf-8")
    assert text.startswith("earlier run\n")
    assert text.count("hello") == 1
    assert not (tmp_path / "other.log").exists()
