"""
Reconciler.

The driver of one pass. It coordinates:
reading the custom resource, choosing between teardown and the step pipeline,
running the steps in order, and turning the outcome into a PassResult.

Idempotence
The trigger system may deliver the same instance twice or out of order.
Every externally visible effect of a pass is idempotent, so a duplicate pass
converges to the same state and sends no second ready signal.

Concurrency
Passes for different instances may run at the same time. The reconciler holds
no per pass state, the PassContext is created fresh for every call. Passes for
the same instance should be serialized by the trigger system, but interleaving
them is still safe.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, Optional

from analyzer_operator.core.errors import OperatorError, ValidationError
from analyzer_operator.core.logs import instance_logger
from analyzer_operator.core.registry import KindRegistry, default_registry
from analyzer_operator.core.serialization import config_from_object
from analyzer_operator.core.settings import OperatorSettings
from analyzer_operator.core.types import AnalyzerConfig, InstanceRef
from analyzer_operator.pipeline.configure import ConfigureStep
from analyzer_operator.pipeline.context import PassContext
from analyzer_operator.pipeline.readiness import ReadinessSignalStep
from analyzer_operator.pipeline.steps import ReconcileStep, StepOutcome
from analyzer_operator.signals.channel import Signal, SignalChannel, SignalKind
from analyzer_operator.store.base import ObjectStore
from analyzer_operator.sync.retry import RetryPolicy
from analyzer_operator.sync.synchronizer import Synchronizer

logger = logging.getLogger(__name__)


class PassOutcome(StrEnum):
    """
    completed
    Every step continued.

    waiting
    A step soft stopped on a dependency that is not ready.

    failed
    A step or the driver hit an error.

    deleted
    The instance was being removed and its objects were torn down.

    absent
    The instance no longer exists. Nothing to do.
    """

    completed = "completed"
    waiting = "waiting"
    failed = "failed"
    deleted = "deleted"
    absent = "absent"


@dataclass(frozen=True)
class PassResult:
    """
    Result of one pass.

    requeue
    True when the caller should expect, or arrange, another trigger.
    Validation errors are not requeued, the spec has to change first.
    """

    instance: InstanceRef
    outcome: PassOutcome
    steps_run: list[str] = field(default_factory=list)
    error: Optional[Exception] = None
    signals: list[Signal] = field(default_factory=list)
    requeue: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class Reconciler:
    """
    Runs one pass per trigger event.

    store
    External object store holding the custom resource and its objects.

    channel
    Signal channel to the secondary controller.

    registry
    Built once by the caller and shared, never mutated.

    steps
    Ordered pipeline. Defaults to configure followed by readiness signal.
    """

    def __init__(
        self,
        store: ObjectStore,
        channel: SignalChannel,
        registry: KindRegistry | None = None,
        settings: OperatorSettings | None = None,
        steps: list[ReconcileStep] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._channel = channel
        self._registry = registry or default_registry()
        self._settings = settings or OperatorSettings()

        retry = RetryPolicy(attempts=self._settings.conflict_retries)
        self._synchronizer = Synchronizer(
            store,
            registry=self._registry,
            retry=retry,
            timeout_seconds=self._settings.timeout_seconds,
            sleep=sleep,
        )

        if steps is None:
            steps = [
                ConfigureStep(
                    store,
                    self._synchronizer,
                    local_mode=self._settings.local_mode,
                    retry=retry,
                    timeout_seconds=self._settings.timeout_seconds,
                    sleep=sleep,
                ),
                ReadinessSignalStep(
                    store,
                    channel,
                    retry=retry,
                    timeout_seconds=self._settings.timeout_seconds,
                    sleep=sleep,
                ),
            ]
        self._steps = list(steps)

    @property
    def synchronizer(self) -> Synchronizer:
        return self._synchronizer

    def reconcile(self, ref: InstanceRef, raise_errors: bool = False) -> PassResult:
        """
        Execute a single pass for one instance.

        Steps
        1) read the custom resource, absent means nothing to do
        2) parse it, a malformed resource fails without requeue
        3) tear down when a deletion is in progress
        4) otherwise run the pipeline until a step stops it

        Errors outside the operator taxonomy are logged with a traceback and
        returned as a failed, requeued result. raise_errors re raises every
        pass error instead.
        """

        log = instance_logger(__name__, str(ref))
        try:
            result = self._reconcile(ref, log)
        except Exception as exc:
            log.exception("pass failed with an unexpected error")
            if raise_errors:
                raise
            return PassResult(instance=ref, outcome=PassOutcome.failed, error=exc, requeue=True)

        if result.error is not None:
            log.warning("pass %s: %s", result.outcome, result.error)
            if raise_errors:
                raise result.error
        else:
            log.info("pass %s after steps %s", result.outcome, result.steps_run)

        return result

    def _reconcile(self, ref: InstanceRef, log: logging.LoggerAdapter) -> PassResult:
        try:
            obj = self._store.get(ref.key(), timeout=self._settings.timeout_seconds)
        except OperatorError as exc:
            return PassResult(instance=ref, outcome=PassOutcome.failed, error=exc, requeue=True)

        if obj is None:
            log.info("instance not found, nothing to do")
            return PassResult(instance=ref, outcome=PassOutcome.absent)

        try:
            config = config_from_object(obj)
        except ValidationError as exc:
            return PassResult(instance=ref, outcome=PassOutcome.failed, error=exc)

        if config.meta.deletion_timestamp:
            return self._teardown(config, log)

        return self._run_pipeline(PassContext(config=config, logger=log))

    def _run_pipeline(self, ctx: PassContext) -> PassResult:
        ref = ctx.config.ref
        steps_run: list[str] = []

        for step in self._steps:
            steps_run.append(step.name)
            result = step.execute(ctx)

            if result.outcome == StepOutcome.continue_:
                continue

            if result.outcome == StepOutcome.stop_soft:
                return PassResult(
                    instance=ref,
                    outcome=PassOutcome.waiting,
                    steps_run=steps_run,
                    signals=list(ctx.signals),
                    requeue=True,
                )

            ctx.error = result.error or OperatorError(f"step {step.name} stopped without an error")
            return PassResult(
                instance=ref,
                outcome=PassOutcome.failed,
                steps_run=steps_run,
                error=ctx.error,
                signals=list(ctx.signals),
                requeue=not isinstance(ctx.error, ValidationError),
            )

        return PassResult(
            instance=ref,
            outcome=PassOutcome.completed,
            steps_run=steps_run,
            signals=list(ctx.signals),
        )

    def _teardown(self, config: AnalyzerConfig, log: logging.LoggerAdapter) -> PassResult:
        """
        Destroy every object of the instance.

        Missing objects are fine. A failure leaves the rest for the next pass.
        The removed signal goes out only on the pass that deleted something.
        """

        ref = config.ref
        log.info("deletion in progress, tearing down")
        signals: list[Signal] = []
        try:
            report = self._synchronizer.teardown(config)
            if report.changed:
                signal = Signal(kind=SignalKind.removed, reason="analyzer instance deleted", instance=ref)
                self._channel.send(signal)
                signals.append(signal)
        except OperatorError as exc:
            return PassResult(instance=ref, outcome=PassOutcome.failed, steps_run=["teardown"], error=exc, requeue=True)

        return PassResult(instance=ref, outcome=PassOutcome.deleted, steps_run=["teardown"], signals=signals)
