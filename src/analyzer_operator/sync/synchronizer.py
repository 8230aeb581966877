"""
Synchronizer.

This module converges descriptors into the object store, or destroys them.

Behavior of converge
1) Read the live object by identity key
2) Absent: create it. AlreadyExists from a racing creator counts as success
3) Present: compare only the fields the operator controls, per the registry
4) Equal: do nothing, so an unchanged descriptor causes no write
5) Different: patch those fields, leaving everything else on the live object alone

A patch that loses an optimistic concurrency race is retried from step 1 with a
bounded number of attempts. Other errors propagate unchanged.

Behavior of sync
Build every descriptor first, so a ValidationError reaches the caller before
any store call. Then confirm every referenced secret exists. Then converge in
registry rank order. There is no rollback. A failure part way leaves earlier
objects in place and the next pass converges the full set again.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable

from analyzer_operator.core.errors import AlreadyExists, ConfigurationError, ConflictError, NotFound
from analyzer_operator.core.registry import ControlledField, FieldPolicy, KindRegistry, default_registry
from analyzer_operator.core.settings import DEFAULT_TIMEOUT_SECONDS
from analyzer_operator.core.types import AnalyzerConfig, Descriptor, ObjectKey, ResourceKind
from analyzer_operator.resources.builder import DesiredStateBuilder
from analyzer_operator.store.base import Manifest, ObjectStore
from analyzer_operator.sync.retry import RetryPolicy, retry_on_conflict

logger = logging.getLogger(__name__)

_MISSING = object()


class SyncOp(StrEnum):
    sync = "sync"
    destroy = "destroy"


class ConvergeOutcome(StrEnum):
    created = "created"
    patched = "patched"
    unchanged = "unchanged"
    raced = "raced"
    deleted = "deleted"
    absent = "absent"


@dataclass
class SyncReport:
    """Outcome per descriptor, in the order they were processed."""

    op: SyncOp
    outcomes: list[tuple[ObjectKey, ConvergeOutcome]] = field(default_factory=list)

    def outcome_for(self, key: ObjectKey) -> ConvergeOutcome | None:
        for k, outcome in self.outcomes:
            if k == key:
                return outcome
        return None

    @property
    def changed(self) -> bool:
        return any(o in {ConvergeOutcome.created, ConvergeOutcome.patched, ConvergeOutcome.deleted} for _, o in self.outcomes)


def _lookup(obj: Any, parts: list[str]) -> Any:
    node = obj
    for part in parts:
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _assign(obj: Manifest, parts: list[str], value: Any) -> None:
    node = obj
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if value is _MISSING:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = copy.deepcopy(value)


def fields_match(live: Manifest, desired: Manifest, fields: tuple[ControlledField, ...]) -> bool:
    """True when every controlled field of live already holds the desired value."""
    for f in fields:
        want = _lookup(desired, f.parts())
        have = _lookup(live, f.parts())
        if f.policy == FieldPolicy.merge:
            if want is _MISSING:
                continue
            have_map = have if isinstance(have, dict) else {}
            if any(have_map.get(k, _MISSING) != v for k, v in want.items()):
                return False
        elif want != have:
            return False
    return True


def apply_fields(target: Manifest, desired: Manifest, fields: tuple[ControlledField, ...]) -> None:
    """Write controlled fields of desired into target in place."""
    for f in fields:
        parts = f.parts()
        want = _lookup(desired, parts)
        if f.policy == FieldPolicy.merge:
            if want is _MISSING:
                continue
            have = _lookup(target, parts)
            merged = dict(have) if isinstance(have, dict) else {}
            merged.update(want)
            _assign(target, parts, merged)
        else:
            _assign(target, parts, want)


class Synchronizer:
    """
    Idempotent converge and destroy engine.

    store
    External object store.

    registry
    Controlled fields and converge order per kind.

    builder
    Produces descriptors for sync and teardown.

    retry
    Bounded conflict retry policy.

    timeout_seconds
    Handed to every store call.
    """

    def __init__(
        self,
        store: ObjectStore,
        registry: KindRegistry | None = None,
        builder: DesiredStateBuilder | None = None,
        retry: RetryPolicy | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._registry = registry or default_registry()
        self._builder = builder or DesiredStateBuilder(self._registry)
        self._retry = retry or RetryPolicy()
        self._timeout = timeout_seconds
        self._sleep = sleep

    @property
    def builder(self) -> DesiredStateBuilder:
        return self._builder

    def converge(self, descriptor: Descriptor) -> ConvergeOutcome:
        """Create or patch one object so its controlled fields match the descriptor."""

        key = descriptor.key
        fields = self._registry.get(descriptor.kind).controlled_fields
        desired = descriptor.body

        def attempt() -> ConvergeOutcome:
            live = self._store.get(key, timeout=self._timeout)
            if live is None:
                try:
                    self._store.create(copy.deepcopy(desired), timeout=self._timeout)
                except AlreadyExists:
                    logger.info("create raced with another writer, treating as converged: %s", key)
                    return ConvergeOutcome.raced
                logger.info("created %s", key)
                return ConvergeOutcome.created

            if fields_match(live, desired, fields):
                logger.debug("unchanged %s", key)
                return ConvergeOutcome.unchanged

            try:
                self._store.patch(live, lambda obj: apply_fields(obj, desired, fields), timeout=self._timeout)
            except NotFound:
                raise ConflictError(f"{key} disappeared between read and patch") from None
            logger.info("patched %s", key)
            return ConvergeOutcome.patched

        return retry_on_conflict(attempt, self._retry, sleep=self._sleep)

    def destroy(self, descriptor: Descriptor) -> ConvergeOutcome:
        """Delete one object by identity key. Absence is success."""

        try:
            self._store.delete(descriptor.key, timeout=self._timeout)
        except NotFound:
            logger.debug("already absent %s", descriptor.key)
            return ConvergeOutcome.absent
        logger.info("deleted %s", descriptor.key)
        return ConvergeOutcome.deleted

    def check_secrets(self, config: AnalyzerConfig) -> None:
        """
        Confirm every secret the spec references exists.

        Called before any converge so a missing secret never leaves a half
        configured workload behind.
        """

        for ref in config.spec.secret_refs():
            key = ObjectKey(kind=ResourceKind.secret.value, namespace=config.meta.namespace, name=ref.name)
            if self._store.get(key, timeout=self._timeout) is None:
                raise ConfigurationError(f"secret {ref.name} does not exist in namespace {config.meta.namespace}")

    def ordered(self, descriptors: list[Descriptor]) -> list[Descriptor]:
        """Stable sort by converge rank."""
        return sorted(descriptors, key=lambda d: self._registry.converge_rank(d.kind))

    def sync(self, config: AnalyzerConfig, op: SyncOp = SyncOp.sync) -> SyncReport:
        """Converge or destroy the full descriptor set for one instance."""

        descriptors = self._builder.build(config, validate=op == SyncOp.sync)
        report = SyncReport(op=op)

        if op == SyncOp.destroy:
            for d in reversed(self.ordered(descriptors)):
                report.outcomes.append((d.key, self.destroy(d)))
            return report

        self.check_secrets(config)
        for d in self.ordered(descriptors):
            report.outcomes.append((d.key, self.converge(d)))
        return report

    def teardown(self, config: AnalyzerConfig) -> SyncReport:
        return self.sync(config, SyncOp.destroy)
