"""
In memory object store.

This store is used for tests and local simulations.
It behaves like a cluster API keyed by ObjectKey with resourceVersion based
optimistic concurrency.

Features
- Records every call so tests can assert what was attempted
- Injects a number of patch conflicts before patches succeed
- Injects arbitrary failures per operation and kind
- Simulates workload status through set_available_replicas
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field

from analyzer_operator.core.errors import AlreadyExists, ConflictError, NotFound
from analyzer_operator.core.types import ObjectKey
from analyzer_operator.store.base import Manifest, MutateFn, ObjectStore, key_of, resource_version


@dataclass(frozen=True)
class StoreCall:
    operation: str
    key: ObjectKey


@dataclass
class InMemoryObjectStore(ObjectStore):
    """
    In memory object store.

    conflicts
    Number of upcoming patch calls that fail with ConflictError.

    failures
    Mapping of (operation, kind) to an exception raised on every matching call.

    objects
    Current state. Values are private copies, callers always get copies back.
    """

    conflicts: int = 0
    failures: dict[tuple[str, str], Exception] = field(default_factory=dict)
    objects: dict[ObjectKey, Manifest] = field(default_factory=dict)
    calls: list[StoreCall] = field(default_factory=list)
    _version: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _record(self, operation: str, key: ObjectKey) -> None:
        self.calls.append(StoreCall(operation=operation, key=key))
        failure = self.failures.get((operation, key.kind))
        if failure is not None:
            raise failure

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _stamp(self, obj: Manifest) -> Manifest:
        stored = copy.deepcopy(obj)
        stored.setdefault("metadata", {})["resourceVersion"] = self._next_version()
        return stored

    def put(self, obj: Manifest) -> Manifest:
        """Seed an object without recording a call. Overwrites silently."""
        with self._lock:
            stored = self._stamp(obj)
            self.objects[key_of(stored)] = stored
            return copy.deepcopy(stored)

    def get(self, key: ObjectKey, timeout: float | None = None) -> Manifest | None:
        with self._lock:
            self._record("get", key)
            found = self.objects.get(key)
            return copy.deepcopy(found) if found is not None else None

    def create(self, obj: Manifest, timeout: float | None = None) -> Manifest:
        key = key_of(obj)
        with self._lock:
            self._record("create", key)
            if key in self.objects:
                raise AlreadyExists(f"{key} already exists")
            stored = self._stamp(obj)
            self.objects[key] = stored
            return copy.deepcopy(stored)

    def patch(self, obj: Manifest, mutate: MutateFn, timeout: float | None = None) -> Manifest:
        key = key_of(obj)
        with self._lock:
            self._record("patch", key)
            current = self.objects.get(key)
            if current is None:
                raise NotFound(f"{key} not found")

            if self.conflicts > 0:
                self.conflicts -= 1
                raise ConflictError(f"{key} was modified, injected conflict")

            if resource_version(obj) != resource_version(current):
                raise ConflictError(f"{key} was modified since it was read")

            updated = copy.deepcopy(obj)
            mutate(updated)
            stored = self._stamp(updated)
            self.objects[key] = stored
            return copy.deepcopy(stored)

    def delete(self, key: ObjectKey, timeout: float | None = None) -> None:
        with self._lock:
            self._record("delete", key)
            if key not in self.objects:
                raise NotFound(f"{key} not found")
            del self.objects[key]

    def set_available_replicas(self, key: ObjectKey, count: int) -> None:
        """Simulate the workload controller updating status. Not recorded as a call."""
        with self._lock:
            current = self.objects.get(key)
            if current is None:
                raise NotFound(f"{key} not found")
            current.setdefault("status", {})["availableReplicas"] = count
            current["metadata"]["resourceVersion"] = self._next_version()

    def operations(self, operation: str, kind: str | None = None) -> list[StoreCall]:
        """Recorded calls filtered by operation and optionally kind."""
        return [c for c in self.calls if c.operation == operation and (kind is None or c.key.kind == kind)]

    def mutating_calls(self) -> list[StoreCall]:
        return [c for c in self.calls if c.operation in {"create", "patch", "delete"}]
