"""
Static trigger source.

Reads a local json file containing either:
1) a single event object
2) or a list of event objects under "events"

Schema example
{
  "events": [
    {"namespace": "ops", "name": "analyzer"}
  ]
}

Entries without a namespace or name are skipped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from analyzer_operator.trigger.base import TriggerEvent, TriggerSource


def _event_from_dict(obj: dict[str, Any]) -> TriggerEvent | None:
    namespace = str(obj.get("namespace", "") or "")
    name = str(obj.get("name", "") or "")
    if not namespace or not name:
        return None
    return TriggerEvent(namespace=namespace, name=name)


@dataclass(frozen=True)
class StaticTriggerSource(TriggerSource):
    """Load events from a local json file."""

    path: Path

    def fetch(self) -> list[TriggerEvent]:
        data = json.loads(self.path.read_text(encoding="utf-8"))

        if isinstance(data, dict) and "events" in data:
            raw = data.get("events", [])
            if not isinstance(raw, list):
                return []
        elif isinstance(data, dict):
            raw = [data]
        else:
            return []

        events = [_event_from_dict(x) for x in raw if isinstance(x, dict)]
        return [e for e in events if e is not None]
