from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Sequence

from ..errors import ToolInvocationError

logger = logging.getLogger(__name__)

POWERSHELL = "powershell.exe"


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


# Signature shared by run_cmd and the scripted runners used in tests.
CommandRunner = Callable[..., CmdResult]


def _fmt_argv(argv: Sequence[str]) -> str:
    return subprocess.list2cmdline(list(argv))


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> CmdResult:
    """Run a command synchronously with consistent logging.

    - Always logs the command.
    - A binary that cannot be started is reported like a non-zero exit (-1).
    - check=True raises ToolInvocationError on non-zero exit.
    """

    argv_list = list(argv)
    logger.info("CMD %s", _fmt_argv(argv_list))

    try:
        p = subprocess.run(
            argv_list,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except OSError as e:
        logger.info("Could not start %s: %s", argv_list[0], e)
        if check:
            raise ToolInvocationError(argv_list, -1, str(e)) from e
        return CmdResult(argv=argv_list, returncode=-1, stdout="", stderr=str(e))

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise ToolInvocationError(argv_list, p.returncode, p.stderr or p.stdout)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def ps_quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted literal."""
    return "'" + str(value).replace("'", "''") + "'"


def powershell_argv(script: str, *, powershell: str = POWERSHELL) -> list[str]:
    return [powershell, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", script]


def run_powershell(
    script: str,
    *,
    run: CommandRunner = run_cmd,
    check: bool = True,
    powershell: str = POWERSHELL,
) -> CmdResult:
    return run(powershell_argv(script, powershell=powershell), check=check)


def run_powershell_json(
    script: str,
    *,
    run: CommandRunner = run_cmd,
    powershell: str = POWERSHELL,
) -> List[Any]:
    """Run a script ending in ConvertTo-Json and return its objects as a list.

    PowerShell emits nothing for an empty pipeline and a bare object for a
    single result; both are normalized to a list.
    """

    r = run_powershell(script, run=run, powershell=powershell)
    text = (r.stdout or "").strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ToolInvocationError(r.argv, r.returncode, f"unparseable JSON output: {text[:200]}") from e
    if isinstance(data, list):
        return data
    return [data]
