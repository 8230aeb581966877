"""
Step interfaces.

A pass is an ordered list of steps. The driver calls each step in turn and
stops at the first outcome that is not continue.

continue
The step finished, the next step may run.

stop_soft
The pass ends without error. Re entry is expected on the next trigger.
Used while a dependency is not ready yet.

stop_terminal
The pass ends with an error. No later step runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional, Protocol

from analyzer_operator.pipeline.context import PassContext


class StepOutcome(StrEnum):
    continue_ = "continue"
    stop_soft = "stop_soft"
    stop_terminal = "stop_terminal"


@dataclass(frozen=True)
class StepResult:
    outcome: StepOutcome
    error: Optional[Exception] = None

    @classmethod
    def proceed(cls) -> "StepResult":
        return cls(StepOutcome.continue_)

    @classmethod
    def soft_stop(cls) -> "StepResult":
        return cls(StepOutcome.stop_soft)

    @classmethod
    def terminal(cls, error: Exception) -> "StepResult":
        return cls(StepOutcome.stop_terminal, error)


class ReconcileStep(Protocol):
    """
    Step interface expected by the driver.

    name
    Short label for logs and pass results.
    """

    name: str

    def execute(self, ctx: PassContext) -> StepResult:
        """Run the step against the pass context."""
