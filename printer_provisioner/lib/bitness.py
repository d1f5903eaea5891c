from __future__ import annotations

import logging
import os
import shutil
import struct
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

REEXEC_FLAG = "--reexecuted"

# Directory that holds the printer_provisioner package.
PACKAGE_ROOT = Path(__file__).resolve().parents[2]


class ExecutionContext(str, Enum):
    NATIVE = "native"
    NEEDS_HANDOFF = "needs_handoff"
    HANDED_OFF = "handed_off"


def is_wow64_process(environ: Mapping[str, str] = os.environ, *, pointer_size: Optional[int] = None) -> bool:
    """True for a 32-bit interpreter running on 64-bit Windows.

    Under WOW64, System32 is redirected and the 64-bit print and PnP tooling
    is not what gets launched.
    """
    if os.name != "nt":
        return False
    size = pointer_size if pointer_size is not None else struct.calcsize("P")
    return size == 4 and bool(environ.get("PROCESSOR_ARCHITEW6432"))


def classify_context(*, reexecuted: bool, wow64: bool) -> ExecutionContext:
    if reexecuted:
        return ExecutionContext.HANDED_OFF
    return ExecutionContext.NEEDS_HANDOFF if wow64 else ExecutionContext.NATIVE


def child_environment(environ: Mapping[str, str]) -> Dict[str, str]:
    """Environment for the 64-bit child, with the package root first on PYTHONPATH.

    The child keeps the caller's working directory, which need not contain
    the package (e.g. when started through install_printer.py).
    """
    env = dict(environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (str(PACKAGE_ROOT), environ.get("PYTHONPATH", "")) if p)
    return env


def ensure_execution_context(
    argv: Sequence[str],
    *,
    reexecuted: bool,
    wow64: Optional[bool] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
    launch: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    environ: Mapping[str, str] = os.environ,
) -> Optional[int]:
    """Hand the run to a 64-bit interpreter when needed, once.

    Returns the child's exit code when a handoff happened (the caller must
    exit with it), or None to continue in this process.
    """

    ctx = classify_context(reexecuted=reexecuted, wow64=is_wow64_process(environ) if wow64 is None else wow64)
    if ctx is ExecutionContext.HANDED_OFF:
        logger.info("Running in handed-off 64-bit context")
        return None
    if ctx is ExecutionContext.NATIVE:
        return None

    launcher = which("py")
    if not launcher:
        logger.warning("32-bit interpreter on 64-bit Windows and no 'py' launcher found; continuing in-process")
        return None

    child = [launcher, "-3-64", "-m", "printer_provisioner", *argv, REEXEC_FLAG]
    logger.info("Handing off to 64-bit interpreter: %s", subprocess.list2cmdline(child))
    p = launch(child, env=child_environment(environ))
    logger.info("64-bit run finished with exit code %s", p.returncode)
    return int(p.returncode)
