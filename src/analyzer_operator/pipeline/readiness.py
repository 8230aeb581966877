"""
Readiness signal step.

Terminal step of the pass. Tells the secondary controller each time the
analyzer server becomes ready. The configure step clears the stored flag when
readiness is lost, so the next transition is announced again.

The stored status remembers whether readiness was already announced. Passes
are triggered again and again, but a ready signal goes out only on the pass
that sees the transition.

Order matters
The signal is sent before the status is written. If the status write fails the
next pass announces again. A duplicate is harmless, a lost signal is not.
"""

from __future__ import annotations

import time
from typing import Callable

from analyzer_operator.core.errors import OperatorError
from analyzer_operator.core.settings import DEFAULT_TIMEOUT_SECONDS
from analyzer_operator.pipeline.context import PassContext
from analyzer_operator.pipeline.instance import patch_instance, set_server_ready
from analyzer_operator.pipeline.steps import StepResult
from analyzer_operator.signals.channel import Signal, SignalChannel, SignalKind
from analyzer_operator.store.base import ObjectStore
from analyzer_operator.sync.retry import RetryPolicy


class ReadinessSignalStep:
    """
    send_timeout
    None blocks until the channel has room.
    """

    name = "readiness-signal"

    def __init__(
        self,
        store: ObjectStore,
        channel: SignalChannel,
        send_timeout: float | None = None,
        retry: RetryPolicy | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._channel = channel
        self._send_timeout = send_timeout
        self._retry = retry or RetryPolicy()
        self._timeout = timeout_seconds
        self._sleep = sleep

    def execute(self, ctx: PassContext) -> StepResult:
        if not ctx.ready or ctx.config.status.server_ready:
            return StepResult.proceed()

        signal = Signal(
            kind=SignalKind.ready,
            reason="analyzer deployment has available replicas",
            instance=ctx.config.ref,
        )

        try:
            self._channel.send(signal, timeout=self._send_timeout)
            ctx.signals.append(signal)
            ctx.logger.info("announced analyzer readiness")

            ctx.config = patch_instance(
                self._store,
                ctx.config.ref,
                set_server_ready(True),
                self._retry,
                self._timeout,
                self._sleep,
            )
        except OperatorError as exc:
            ctx.logger.error("readiness signal step failed: %s", exc)
            return StepResult.terminal(exc)

        return StepResult.proceed()
