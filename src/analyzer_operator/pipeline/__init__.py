"""
Pipeline package.

This makes the pipeline folder an explicit package so both Python and mypy
resolve modules consistently.
"""

from analyzer_operator.pipeline.configure import ConfigureStep
from analyzer_operator.pipeline.context import PassContext
from analyzer_operator.pipeline.readiness import ReadinessSignalStep
from analyzer_operator.pipeline.steps import ReconcileStep, StepOutcome, StepResult

__all__ = [
    "ConfigureStep",
    "PassContext",
    "ReadinessSignalStep",
    "ReconcileStep",
    "StepOutcome",
    "StepResult",
]
