from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List

from .command import CommandRunner, powershell_argv, ps_quote
from .strategies import Strategy

logger = logging.getLogger(__name__)


def pnputil_argv(inf_path: Path, *, pnputil: str = "pnputil.exe") -> list[str]:
    return [pnputil, "/add-driver", str(inf_path), "/install"]


def staging_strategies(
    inf_path: Path,
    *,
    run: CommandRunner,
    pnputil: str = "pnputil.exe",
    powershell: str = "powershell.exe",
) -> List[Strategy]:
    """Ways of injecting an INF into the driver store, in order of preference.

    All three run the same pnputil command line; they differ only in how it
    is launched, which matters on hosts where one launch path is blocked.
    """

    argv = pnputil_argv(inf_path, pnputil=pnputil)
    command_line = subprocess.list2cmdline(argv)

    return [
        Strategy("direct", lambda: run(argv, check=False)),
        Strategy("command-interpreter", lambda: run(["cmd.exe", "/c", command_line], check=False)),
        Strategy(
            "expression",
            lambda: run(
                powershell_argv(
                    f"Invoke-Expression {ps_quote('& ' + command_line)}; exit $LASTEXITCODE",
                    powershell=powershell,
                ),
                check=False,
            ),
        ),
    ]
