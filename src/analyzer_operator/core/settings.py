"""
Operator settings.

Settings come from the process environment so the same image runs in cluster
and on a developer machine.

LOCAL_MODE
Any non empty value enables local mode. In local mode the pipeline does not wait
for the analyzer server to report available replicas.

OPERATOR_TIMEOUT
Per call timeout for object store calls. Accepts a duration such as 35s, 2m,
1m30s, 500ms, or a plain number of seconds.

OPERATOR_CONFLICT_RETRIES
Attempts for a patch that keeps losing optimistic concurrency races.

OPERATOR_SIGNAL_CAPACITY
Capacity of the inter controller signal channel.

OPERATOR_LOG_LEVEL
Standard logging level name.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping

from analyzer_operator.core.errors import ConfigurationError

DEFAULT_TIMEOUT_SECONDS = 35.0
DEFAULT_CONFLICT_RETRIES = 5
DEFAULT_SIGNAL_CAPACITY = 10

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(text: str) -> float:
    """
    Parse a duration string into seconds.

    A plain number is read as seconds.
    """
    raw = text.strip()
    if not raw:
        raise ConfigurationError("empty duration")

    try:
        value = float(raw)
    except ValueError:
        pass
    else:
        if value < 0:
            raise ConfigurationError(f"negative duration: {text}")
        return value

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(raw):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(raw):
        raise ConfigurationError(f"invalid duration: {text}")
    return total


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return value


@dataclass(frozen=True)
class OperatorSettings:
    """
    Operator settings.

    local_mode
    Ignore readiness and proceed through the pipeline.

    timeout_seconds
    Per call timeout handed to the object store.

    conflict_retries
    Total patch attempts when conflicts keep happening.

    signal_capacity
    Bounded size of the signal channel.

    log_level
    Level name passed to configure_logging.
    """

    local_mode: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    conflict_retries: int = DEFAULT_CONFLICT_RETRIES
    signal_capacity: int = DEFAULT_SIGNAL_CAPACITY
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "OperatorSettings":
        env = os.environ if env is None else env

        timeout_raw = env.get("OPERATOR_TIMEOUT", "")
        timeout = parse_duration(timeout_raw) if timeout_raw.strip() else DEFAULT_TIMEOUT_SECONDS

        return cls(
            local_mode=env.get("LOCAL_MODE", "") != "",
            timeout_seconds=timeout,
            conflict_retries=_positive_int(env, "OPERATOR_CONFLICT_RETRIES", DEFAULT_CONFLICT_RETRIES),
            signal_capacity=_positive_int(env, "OPERATOR_SIGNAL_CAPACITY", DEFAULT_SIGNAL_CAPACITY),
            log_level=env.get("OPERATOR_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
