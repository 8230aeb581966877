"""
Object store interfaces.

Goal
Define a stable interface to the external object store without binding the
synchronizer to a specific cluster client.

Outcome contract
get returns None when the object does not exist.
create raises AlreadyExists when the identity key is taken.
patch raises ConflictError when the object changed since it was read.
delete raises NotFound when there is nothing to delete.

Any other failure should be raised as StoreError or left to propagate.
The synchronizer relies on these outcomes being distinguishable from generic errors.

Every call takes a timeout in seconds. Adapters for real clusters must bound
the call with it. The in memory store ignores it.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

from analyzer_operator.core.types import ObjectKey

Manifest = dict[str, Any]
MutateFn = Callable[[Manifest], None]


def key_of(obj: Manifest) -> ObjectKey:
    """Identity key of a manifest. Cluster scoped objects have no namespace."""
    meta = obj.get("metadata", {}) or {}
    return ObjectKey(
        kind=str(obj.get("kind", "")),
        namespace=str(meta.get("namespace", "") or ""),
        name=str(meta.get("name", "")),
    )


def resource_version(obj: Manifest) -> str:
    meta = obj.get("metadata", {}) or {}
    return str(meta.get("resourceVersion", "") or "")


class ObjectStore(Protocol):
    """
    Object store interface expected by the synchronizer and the pipeline.

    patch
    obj is the object as last read, including its resourceVersion.
    mutate is applied to a copy of obj. The store writes the result only if
    the stored resourceVersion still matches.
    """

    def get(self, key: ObjectKey, timeout: float | None = None) -> Manifest | None:
        """Return the stored object or None."""

    def create(self, obj: Manifest, timeout: float | None = None) -> Manifest:
        """Create the object and return it as stored."""

    def patch(self, obj: Manifest, mutate: MutateFn, timeout: float | None = None) -> Manifest:
        """Apply mutate under optimistic concurrency and return the stored result."""

    def delete(self, key: ObjectKey, timeout: float | None = None) -> None:
        """Delete the object."""
