"""
Kind registry.

Purpose
The synchronizer needs a few facts per kind:
- the apiVersion to stamp on manifests
- whether the kind is namespaced
- which top level fields the operator owns and may patch
- where the kind sits in the converge order

We build the registry once at startup and pass it by reference into the driver.
It is never mutated afterwards.

Controlled fields
Each entry is a dotted path into the manifest.
replace paths are overwritten with the desired value.
merge paths must be mappings. Only the desired keys are written, so keys set by
other actors survive, for example annotations added by an admission webhook.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Iterable, Mapping

from analyzer_operator.core.types import ResourceKind


class FieldPolicy(StrEnum):
    replace = "replace"
    merge = "merge"


@dataclass(frozen=True)
class ControlledField:
    path: str
    policy: FieldPolicy = FieldPolicy.replace

    def parts(self) -> list[str]:
        return self.path.split(".")


@dataclass(frozen=True)
class KindInfo:
    """
    Registration for one kind.

    converge_rank
    Lower ranks are converged first. Identity and access control rank before
    the workload that depends on them.
    """

    kind: str
    api_version: str
    namespaced: bool
    controlled_fields: tuple[ControlledField, ...]
    converge_rank: int


class KindRegistry:
    """Read only lookup of KindInfo by kind name."""

    def __init__(self, kinds: Iterable[KindInfo]) -> None:
        table: dict[str, KindInfo] = {}
        for info in kinds:
            if info.kind in table:
                raise ValueError(f"kind registered twice: {info.kind}")
            table[info.kind] = info
        self._kinds: Mapping[str, KindInfo] = MappingProxyType(table)

    def get(self, kind: str) -> KindInfo:
        try:
            return self._kinds[kind]
        except KeyError:
            raise KeyError(f"kind not registered: {kind}") from None

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds

    def converge_rank(self, kind: str) -> int:
        return self.get(kind).converge_rank


def default_registry() -> KindRegistry:
    """
    Registry for every kind the operator reads or writes.

    Secrets are read only. They get no controlled fields.
    """
    return KindRegistry(
        [
            KindInfo(
                kind=ResourceKind.analyzer.value,
                api_version="core.analyzer.dev/v1alpha1",
                namespaced=True,
                controlled_fields=(),
                converge_rank=100,
            ),
            KindInfo(
                kind=ResourceKind.service_account.value,
                api_version="v1",
                namespaced=True,
                controlled_fields=(ControlledField("metadata.annotations", FieldPolicy.merge),),
                converge_rank=0,
            ),
            KindInfo(
                kind=ResourceKind.cluster_role.value,
                api_version="rbac.authorization.k8s.io/v1",
                namespaced=False,
                controlled_fields=(ControlledField("rules"),),
                converge_rank=1,
            ),
            KindInfo(
                kind=ResourceKind.cluster_role_binding.value,
                api_version="rbac.authorization.k8s.io/v1",
                namespaced=False,
                controlled_fields=(ControlledField("subjects"), ControlledField("roleRef")),
                converge_rank=2,
            ),
            KindInfo(
                kind=ResourceKind.service.value,
                api_version="v1",
                namespaced=True,
                controlled_fields=(ControlledField("spec"),),
                converge_rank=3,
            ),
            KindInfo(
                kind=ResourceKind.deployment.value,
                api_version="apps/v1",
                namespaced=True,
                controlled_fields=(ControlledField("spec"),),
                converge_rank=4,
            ),
            KindInfo(
                kind=ResourceKind.secret.value,
                api_version="v1",
                namespaced=True,
                controlled_fields=(),
                converge_rank=100,
            ),
        ]
    )
