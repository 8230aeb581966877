"""
In process trigger source.

Producers call push from any thread. fetch returns the pending events once
each, in first push order, and collapses repeated pushes for an instance that
is still pending into one event.
"""

from __future__ import annotations

import threading

from analyzer_operator.trigger.base import TriggerEvent, TriggerSource


class QueueTriggerSource(TriggerSource):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[TriggerEvent, None] = {}

    def push(self, namespace: str, name: str) -> None:
        with self._lock:
            self._pending.setdefault(TriggerEvent(namespace=namespace, name=name), None)

    def fetch(self) -> list[TriggerEvent]:
        with self._lock:
            events = list(self._pending)
            self._pending.clear()
        return events

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
