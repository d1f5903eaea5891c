from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def installation_log_path(printer_name: str, log_dir: Optional[str] = None) -> Path:
    """Per-printer log file, in the OS temp directory unless overridden."""
    stem = _INVALID_FILENAME_CHARS.sub("_", printer_name).strip(" .") or "printer"
    return Path(log_dir or tempfile.gettempdir()) / f"{stem}.log"


def configure_logging(
    log_path: Path,
    level: int = logging.INFO,
    also_console: bool = True,
) -> Path:
    """Configure the installation log.

    The file is opened in append mode and never rotated or truncated: it is
    the diagnostic record across every run for this printer.

    If the requested location is not writable, a file with the same name in
    the working directory is used instead and both paths are logged.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_provisioner_configured", False):
        return getattr(logger, "_provisioner_log_path", log_path)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: list[logging.Handler] = []

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        chosen_path = log_path
    except OSError:
        chosen_path = Path.cwd() / log_path.name
        file_handler = logging.FileHandler(chosen_path, mode="a", encoding="utf-8")
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_provisioner_configured", True)
    setattr(logger, "_provisioner_log_path", chosen_path)
    setattr(logger, "_provisioner_handlers", handlers)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path


def reset_logging() -> None:
    """Detach and close the handlers added by configure_logging()."""

    logger = logging.getLogger()
    for h in getattr(logger, "_provisioner_handlers", []):
        logger.removeHandler(h)
        h.close()
    for attr in ("_provisioner_configured", "_provisioner_log_path", "_provisioner_handlers"):
        if hasattr(logger, attr):
            delattr(logger, attr)
