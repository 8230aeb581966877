"""
Pass context.

One PassContext exists per pass. The driver creates it, hands it by reference
to each step in turn, and drops it when the pass ends. Nothing in it outlives
the pass, durable state lives in the object store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from analyzer_operator.core.types import AnalyzerConfig, ObjectKey, ResourceKind
from analyzer_operator.signals.channel import Signal
from analyzer_operator.sync.synchronizer import SyncReport


@dataclass
class PassContext:
    """
    Mutable scratch for one pass.

    config
    The custom resource as read at the start of the pass. A step that
    persists a derived default replaces it with the stored result.

    workload
    The live Deployment as fetched by the configure step, None when absent.

    ready
    True when the workload reports at least one available replica.

    error
    The error that ended the pass, if any.

    signals
    Signals sent during this pass.
    """

    config: AnalyzerConfig
    logger: logging.LoggerAdapter
    workload: Optional[dict[str, Any]] = None
    ready: bool = False
    error: Optional[Exception] = None
    sync_report: Optional[SyncReport] = None
    signals: list[Signal] = field(default_factory=list)

    @property
    def workload_key(self) -> ObjectKey:
        return ObjectKey(
            kind=ResourceKind.deployment.value,
            namespace=self.config.meta.namespace,
            name=self.config.meta.name,
        )


def available_replicas(workload: Optional[dict[str, Any]]) -> int:
    if workload is None:
        return 0
    status = workload.get("status", {}) or {}
    try:
        return int(status.get("availableReplicas", 0) or 0)
    except (TypeError, ValueError):
        return 0
