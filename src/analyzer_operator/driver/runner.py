"""
Operator runner.

Each cycle fetches trigger events and runs one reconcile pass per event.

The runner builds the reconciler and its signal channel from settings.
Only the runner reads the process environment.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from analyzer_operator.core.logs import configure_logging
from analyzer_operator.core.registry import KindRegistry, default_registry
from analyzer_operator.core.settings import OperatorSettings
from analyzer_operator.driver.reconciler import PassResult, Reconciler
from analyzer_operator.signals.channel import SignalChannel
from analyzer_operator.store.base import ObjectStore
from analyzer_operator.trigger.base import TriggerSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunnerConfig:
    """
    interval_seconds
    Pause after each cycle, even when it fetched nothing.
    """

    interval_seconds: float = 10


class OperatorRunner:
    """Long running loop around the reconciler."""

    def __init__(
        self,
        store: ObjectStore,
        trigger_source: TriggerSource,
        settings: OperatorSettings | None = None,
        config: RunnerConfig | None = None,
        channel: SignalChannel | None = None,
        registry: KindRegistry | None = None,
    ) -> None:
        self._settings = settings or OperatorSettings.from_env()
        self._config = config or RunnerConfig()
        self._trigger_source = trigger_source

        self._registry = registry or default_registry()
        self._channel = channel or SignalChannel(capacity=self._settings.signal_capacity)

        if self._settings.local_mode:
            logger.info("running in local mode, readiness checks are skipped")

        self._reconciler = Reconciler(
            store,
            self._channel,
            registry=self._registry,
            settings=self._settings,
        )

    @property
    def channel(self) -> SignalChannel:
        return self._channel

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    def run_cycle(self) -> list[PassResult]:
        """
        Execute one cycle. One pass per fetched event.
        """

        results: list[PassResult] = []
        for event in self._trigger_source.fetch():
            result = self._reconciler.reconcile(event.ref)
            results.append(result)

            if not result.ok:
                logger.warning("ALERT: %s %s: %s", event.ref, result.outcome, result.error)

        return results

    def run_forever(self) -> None:
        """
        Run cycles until the process is stopped.

        Installs the package log handler at the configured level first.
        """

        configure_logging(self._settings.log_level)
        while True:
            self.run_cycle()
            time.sleep(self._config.interval_seconds)
