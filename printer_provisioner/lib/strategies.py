from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ..errors import ProvisioningError
from .command import CmdResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Strategy:
    """One named, complete attempt at an operation."""

    name: str
    attempt: Callable[[], CmdResult]


@dataclass(frozen=True)
class StrategyOutcome:
    name: str
    succeeded: bool
    reason: str = ""


@dataclass(frozen=True)
class StrategyRun:
    attempts: List[StrategyOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return any(a.succeeded for a in self.attempts)

    @property
    def winner(self) -> Optional[str]:
        return next((a.name for a in self.attempts if a.succeeded), None)

    @property
    def last_reason(self) -> str:
        return self.attempts[-1].reason if self.attempts else "no strategies configured"


def _holds(recheck: Callable[[], bool], label: str) -> bool:
    try:
        return bool(recheck())
    except ProvisioningError as e:
        logger.warning("%s: post-condition check failed (%s); treating as not met", label, e)
        return False


def run_strategies(
    strategies: Sequence[Strategy],
    *,
    label: str,
    recheck: Optional[Callable[[], bool]] = None,
) -> StrategyRun:
    """Try strategies in order; stop at the first success.

    A failed attempt is followed by ``recheck`` (when given): some tools report
    failure after doing their job, so the post-condition decides.
    Each strategy is tried exactly once.
    """

    attempts: List[StrategyOutcome] = []
    for strategy in strategies:
        logger.info("%s: trying strategy %r", label, strategy.name)
        try:
            r = strategy.attempt()
            reason = "" if r.ok else f"exit code {r.returncode}: {(r.stderr or r.stdout).strip()[:300]}"
        except ProvisioningError as e:
            reason = str(e)

        if not reason:
            logger.info("%s: strategy %r succeeded", label, strategy.name)
            attempts.append(StrategyOutcome(strategy.name, True))
            break

        logger.warning("%s: strategy %r failed (%s)", label, strategy.name, reason)
        if recheck is not None and _holds(recheck, label):
            logger.info("%s: post-condition holds despite reported failure of %r", label, strategy.name)
            attempts.append(StrategyOutcome(strategy.name, True, f"recovered after: {reason}"))
            break

        attempts.append(StrategyOutcome(strategy.name, False, reason))

    return StrategyRun(attempts=attempts)
