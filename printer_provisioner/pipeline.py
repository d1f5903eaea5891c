from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol, Sequence

from .context import RunContext
from .errors import ProvisioningError

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"
    FATAL = "fatal"


@dataclass(frozen=True)
class StageResult:
    step_id: str
    status: StageStatus
    message: str = ""

    @classmethod
    def success(cls, step_id: str, message: str = "") -> "StageResult":
        return cls(step_id, StageStatus.SUCCESS, message)

    @classmethod
    def fallback(cls, step_id: str, message: str) -> "StageResult":
        return cls(step_id, StageStatus.FALLBACK, message)

    @classmethod
    def fatal(cls, step_id: str, message: str) -> "StageResult":
        return cls(step_id, StageStatus.FATAL, message)


class Step(Protocol):
    """A single idempotent stage."""

    step_id: str

    def run(self, ctx: RunContext) -> StageResult:
        ...


@dataclass(frozen=True)
class PipelineResult:
    results: List[StageResult]
    skipped_steps: List[str]

    @property
    def succeeded(self) -> bool:
        return all(r.status is not StageStatus.FATAL for r in self.results)

    @property
    def ran_steps(self) -> List[str]:
        return [r.step_id for r in self.results]


def run_pipeline(*, ctx: RunContext, steps: Sequence[Step]) -> PipelineResult:
    """Run steps strictly in order; a fatal result stops the run."""

    results: List[StageResult] = []
    skipped: List[str] = []

    for i, step in enumerate(steps):
        logger.info("Running step %s", step.step_id)
        try:
            result = step.run(ctx)
        except ProvisioningError as e:
            logger.error("Step %s failed: %s", step.step_id, e)
            result = StageResult.fatal(step.step_id, str(e))
        except Exception as e:
            logger.exception("Step %s failed unexpectedly", step.step_id)
            result = StageResult.fatal(step.step_id, f"unexpected error: {e}")

        results.append(result)
        if result.status is StageStatus.FALLBACK:
            logger.warning("Step %s continued with fallback: %s", step.step_id, result.message)

        if result.status is StageStatus.FATAL:
            skipped = [s.step_id for s in steps[i + 1 :]]
            if skipped:
                logger.error("Aborting; not running: %s", ", ".join(skipped))
            break

    return PipelineResult(results=results, skipped_steps=skipped)
