"""
Configure step.

This is the entry step of every pass.

Steps
1) persist the default backoff policy if the spec has none
2) fetch the analyzer Deployment and compute readiness
3) converge the full descriptor set, on every pass, ready or not
4) clear the stored readiness when the analyzer is no longer ready
5) soft stop while the analyzer is not ready, unless in local mode
6) continue to the next step

Converging before the readiness check makes every pass self healing. An object
deleted or edited by hand comes back on the next trigger even while we wait
for the Deployment to become available.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from analyzer_operator.core.errors import OperatorError
from analyzer_operator.core.serialization import backoff_to_object
from analyzer_operator.core.settings import DEFAULT_TIMEOUT_SECONDS
from analyzer_operator.core.types import BackOff
from analyzer_operator.pipeline.context import PassContext, available_replicas
from analyzer_operator.pipeline.instance import patch_instance, set_server_ready
from analyzer_operator.pipeline.steps import StepResult
from analyzer_operator.resources.defaults import DEFAULT_BACKOFF_MAX_RETRIES
from analyzer_operator.store.base import ObjectStore
from analyzer_operator.sync.retry import RetryPolicy
from analyzer_operator.sync.synchronizer import Synchronizer


def _set_backoff(backoff: BackOff) -> Callable[[dict[str, Any]], None]:
    def mutate(obj: dict[str, Any]) -> None:
        ai = obj.setdefault("spec", {}).setdefault("ai", {})
        if ai.get("backOff") is None:
            ai["backOff"] = backoff_to_object(backoff)

    return mutate


class ConfigureStep:
    """
    Entry step.

    local_mode
    When True, readiness is ignored and the pass always continues.
    """

    name = "configure"

    def __init__(
        self,
        store: ObjectStore,
        synchronizer: Synchronizer,
        local_mode: bool = False,
        retry: RetryPolicy | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._synchronizer = synchronizer
        self._local_mode = local_mode
        self._retry = retry or RetryPolicy()
        self._timeout = timeout_seconds
        self._sleep = sleep

    def execute(self, ctx: PassContext) -> StepResult:
        ctx.logger.info("starting configure step")

        if ctx.config.spec.ai.backoff is None:
            try:
                self._configure_backoff(ctx)
            except OperatorError as exc:
                ctx.logger.error("could not persist default backoff: %s", exc)
                return StepResult.terminal(exc)

        try:
            ctx.workload = self._store.get(ctx.workload_key, timeout=self._timeout)
            ctx.ready = available_replicas(ctx.workload) > 0
            ctx.sync_report = self._synchronizer.sync(ctx.config)
        except OperatorError as exc:
            ctx.logger.error("configure failed: %s", exc)
            return StepResult.terminal(exc)

        if not ctx.ready and ctx.config.status.server_ready:
            try:
                self._clear_server_ready(ctx)
            except OperatorError as exc:
                ctx.logger.error("could not record lost readiness: %s", exc)
                return StepResult.terminal(exc)

        if not ctx.ready and not self._local_mode:
            ctx.logger.info("analyzer server not running, waiting next sync")
            return StepResult.soft_stop()

        ctx.logger.info("ending configure step")
        return StepResult.proceed()

    def _configure_backoff(self, ctx: PassContext) -> None:
        """
        Write the default policy before going further.

        A pass must never run with a default that exists only in memory.
        """

        default = BackOff(enabled=False, max_retries=DEFAULT_BACKOFF_MAX_RETRIES)
        ctx.config = patch_instance(
            self._store,
            ctx.config.ref,
            _set_backoff(default),
            self._retry,
            self._timeout,
            self._sleep,
        )
        ctx.logger.info("persisted default backoff policy")

    def _clear_server_ready(self, ctx: PassContext) -> None:
        """Forget the announced readiness so the next transition to ready signals again."""

        ctx.config = patch_instance(
            self._store,
            ctx.config.ref,
            set_server_ready(False),
            self._retry,
            self._timeout,
            self._sleep,
        )
        ctx.logger.info("analyzer server lost readiness")
