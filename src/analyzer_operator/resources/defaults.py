"""
Resource defaults.

Each of the four resource fields falls back on its own.
Overriding the cpu limit must not change the memory limit or either request.
"""

from __future__ import annotations

from typing import Mapping, Optional, TypeVar

from analyzer_operator.core.types import ResourceOverrides

T = TypeVar("T")

DEFAULT_CPU_LIMIT = "1"
DEFAULT_MEMORY_LIMIT = "512Mi"
DEFAULT_CPU_REQUEST = "0.2"
DEFAULT_MEMORY_REQUEST = "256Mi"

DEFAULT_BACKOFF_MAX_RETRIES = 5


def default_or(explicit: Optional[T], fallback: T) -> T:
    """Return explicit unless it is None or an empty string."""
    if explicit is None or explicit == "":
        return fallback
    return explicit


def _lookup(values: Optional[Mapping[str, str]], key: str) -> Optional[str]:
    if not values:
        return None
    return values.get(key)


def resource_requirements(overrides: Optional[ResourceOverrides]) -> dict[str, dict[str, str]]:
    """Build the container resources block from optional overrides."""
    limits = overrides.limits if overrides is not None else None
    requests = overrides.requests if overrides is not None else None

    return {
        "limits": {
            "cpu": default_or(_lookup(limits, "cpu"), DEFAULT_CPU_LIMIT),
            "memory": default_or(_lookup(limits, "memory"), DEFAULT_MEMORY_LIMIT),
        },
        "requests": {
            "cpu": default_or(_lookup(requests, "cpu"), DEFAULT_CPU_REQUEST),
            "memory": default_or(_lookup(requests, "memory"), DEFAULT_MEMORY_REQUEST),
        },
    }
