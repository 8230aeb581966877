"""
Writes to the analyzer custom resource.

Steps write derived values back to the custom resource, the backoff default
and the readiness status. Both go through patch_instance, which re reads the
resource on every attempt and retries on conflict.

Every store failure is raised as PersistenceError. The caller aborts the pass.
"""

from __future__ import annotations

from typing import Any, Callable

from analyzer_operator.core.errors import ConflictError, NotFound, PersistenceError, StoreError
from analyzer_operator.core.serialization import config_from_object
from analyzer_operator.core.types import AnalyzerConfig, InstanceRef
from analyzer_operator.store.base import ObjectStore
from analyzer_operator.sync.retry import RetryPolicy, retry_on_conflict


def patch_instance(
    store: ObjectStore,
    ref: InstanceRef,
    mutate: Callable[[dict[str, Any]], None],
    retry: RetryPolicy,
    timeout: float,
    sleep: Callable[[float], None],
) -> AnalyzerConfig:
    """Patch the custom resource and return it parsed as stored."""

    key = ref.key()

    def attempt() -> dict[str, Any]:
        live = store.get(key, timeout=timeout)
        if live is None:
            raise NotFound(f"{key} not found")
        return store.patch(live, mutate, timeout=timeout)

    try:
        stored = retry_on_conflict(attempt, retry, sleep=sleep)
    except ConflictError as exc:
        raise PersistenceError(f"could not write {key}: conflict retries exhausted") from exc
    except StoreError as exc:
        raise PersistenceError(f"could not write {key}: {exc}") from exc

    return config_from_object(stored)


def set_server_ready(value: bool) -> Callable[[dict[str, Any]], None]:
    def mutate(obj: dict[str, Any]) -> None:
        obj.setdefault("status", {})["serverReady"] = value

    return mutate
