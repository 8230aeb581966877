"""
Conflict retry.

Only ConflictError is retried. Every other exception propagates on the first
attempt, because a generic failure will not fix itself within a pass.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from analyzer_operator.core.errors import ConflictError
from analyzer_operator.core.settings import DEFAULT_CONFLICT_RETRIES

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    attempts
    Total attempts including the first one.

    delay_seconds
    Fixed pause between attempts.
    """

    attempts: int = DEFAULT_CONFLICT_RETRIES
    delay_seconds: float = 0.01


def retry_on_conflict(
    fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it stops raising ConflictError or attempts run out.

    fn must re read whatever it writes, otherwise every retry repeats the same
    stale write and conflicts again.
    """

    policy = policy or RetryPolicy()
    if policy.attempts < 1:
        raise ValueError("retry policy needs at least one attempt")

    for attempt in range(1, policy.attempts + 1):
        try:
            return fn()
        except ConflictError:
            if attempt == policy.attempts:
                logger.warning("conflict persisted after %d attempts", attempt)
                raise
            logger.debug("conflict on attempt %d of %d, retrying", attempt, policy.attempts)
            if policy.delay_seconds > 0:
                sleep(policy.delay_seconds)

    raise AssertionError("unreachable")
