"""
Trigger source interfaces.

Goal
Provide pluggable trigger ingestion.

A trigger source returns events that each ask for one pass over one instance.
Sources give no ordering or deduplication guarantee. The reconciler tolerates
duplicates and reordering because every pass is idempotent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from analyzer_operator.core.types import InstanceRef


@dataclass(frozen=True)
class TriggerEvent:
    """Reconcile instance namespace/name."""

    namespace: str
    name: str

    @property
    def ref(self) -> InstanceRef:
        return InstanceRef(namespace=self.namespace, name=self.name)


class TriggerSource(Protocol):
    """
    Trigger source interface.

    fetch returns pending events.
    A source may return an empty list when nothing changed.
    """

    def fetch(self) -> list[TriggerEvent]:
        """Fetch pending events."""
