import pytest

from analyzer_operator.core.errors import AlreadyExists, ConfigurationError, ConflictError, StoreError, ValidationError
from analyzer_operator.core.types import (
    AISpec,
    AnalyzerConfig,
    AnalyzerSpec,
    ExtraOptions,
    ObjectKey,
    ObjectMeta,
    SecretRef,
)
from analyzer_operator.resources.builder import DesiredStateBuilder, identity_names
from analyzer_operator.store.memory import InMemoryObjectStore
from analyzer_operator.sync.retry import RetryPolicy
from analyzer_operator.sync.synchronizer import ConvergeOutcome, Synchronizer


def _make_config(spec: AnalyzerSpec | None = None) -> AnalyzerConfig:
    return AnalyzerConfig(
        meta=ObjectMeta(name="analyzer", namespace="ops", uid="u1"),
        spec=spec or AnalyzerSpec(),
    )


def _make_sync(store: InMemoryObjectStore, attempts: int = 5) -> Synchronizer:
    return Synchronizer(store, retry=RetryPolicy(attempts=attempts, delay_seconds=0))


def _descriptor(kind: str):
    return [d for d in DesiredStateBuilder().build(_make_config()) if d.kind == kind][0]


def _secret(name: str) -> dict:
    return {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": name, "namespace": "ops"}}


def test_converge_creates_missing_object():
    store = InMemoryObjectStore()
    d = _descriptor("Deployment")

    assert _make_sync(store).converge(d) == ConvergeOutcome.created
    assert store.objects[d.key]["spec"] == d.body["spec"]


def test_converge_twice_is_idempotent():
    store = InMemoryObjectStore()
    sync = _make_sync(store)
    d = _descriptor("Deployment")

    sync.converge(d)
    version = store.objects[d.key]["metadata"]["resourceVersion"]
    store.calls.clear()

    assert sync.converge(d) == ConvergeOutcome.unchanged
    assert store.mutating_calls() == []
    assert store.objects[d.key]["metadata"]["resourceVersion"] == version


def test_converge_patches_only_controlled_fields():
    store = InMemoryObjectStore()
    d = _descriptor("Deployment")
    live = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "analyzer", "namespace": "ops", "labels": {"team": "sre"}},
        "spec": {"replicas": 3},
        "status": {"availableReplicas": 3},
    }
    store.put(live)

    assert _make_sync(store).converge(d) == ConvergeOutcome.patched

    stored = store.objects[d.key]
    assert stored["spec"] == d.body["spec"]
    assert stored["metadata"]["labels"] == {"team": "sre"}
    assert stored["status"] == {"availableReplicas": 3}


def test_converge_merges_annotations_on_service_account():
    store = InMemoryObjectStore()
    d = _descriptor("ServiceAccount")
    store.put(
        {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {"name": d.name, "namespace": "ops", "annotations": {"owner": "platform"}},
        }
    )
    config = _make_config(AnalyzerSpec(extra_options=ExtraOptions(service_account_role_arn="arn:role")))
    wanted = DesiredStateBuilder().service_account(config, identity_names("ops"))

    assert _make_sync(store).converge(wanted) == ConvergeOutcome.patched
    assert store.objects[d.key]["metadata"]["annotations"] == {
        "owner": "platform",
        "eks.amazonaws.com/role-arn": "arn:role",
    }


@pytest.mark.parametrize("conflicts", [0, 1, 4])
def test_conflicts_below_bound_are_retried(conflicts):
    store = InMemoryObjectStore()
    d = _descriptor("Service")
    store.put({"apiVersion": "v1", "kind": "Service", "metadata": {"name": "analyzer", "namespace": "ops"}, "spec": {}})
    store.conflicts = conflicts

    assert _make_sync(store, attempts=5).converge(d) == ConvergeOutcome.patched
    assert len(store.operations("patch")) == conflicts + 1
    assert store.objects[d.key]["spec"] == d.body["spec"]


@pytest.mark.parametrize("conflicts", [5, 7])
def test_conflicts_at_bound_fail(conflicts):
    store = InMemoryObjectStore()
    d = _descriptor("Service")
    store.put({"apiVersion": "v1", "kind": "Service", "metadata": {"name": "analyzer", "namespace": "ops"}, "spec": {}})
    store.conflicts = conflicts

    with pytest.raises(ConflictError):
        _make_sync(store, attempts=5).converge(d)

    assert len(store.operations("patch")) == 5


class _RacingStore(InMemoryObjectStore):
    """Reports the object as absent, then loses the create race."""

    def get(self, key, timeout=None):
        super().get(key, timeout)
        return None

    def create(self, obj, timeout=None):
        super().create(obj, timeout)
        raise AlreadyExists("someone else created it")


def test_create_race_counts_as_success():
    store = _RacingStore()

    assert _make_sync(store).converge(_descriptor("Service")) == ConvergeOutcome.raced


def test_destroy_missing_object_is_success():
    store = InMemoryObjectStore()

    assert _make_sync(store).destroy(_descriptor("Deployment")) == ConvergeOutcome.absent


def test_destroy_existing_object():
    store = InMemoryObjectStore()
    sync = _make_sync(store)
    d = _descriptor("Deployment")
    sync.converge(d)

    assert sync.destroy(d) == ConvergeOutcome.deleted
    assert d.key not in store.objects


def test_sync_converges_identity_before_workload():
    store = InMemoryObjectStore()

    report = _make_sync(store).sync(_make_config())

    created = [c.key.kind for c in store.operations("create")]
    assert created == ["ServiceAccount", "ClusterRole", "ClusterRoleBinding", "Service", "Deployment"]
    assert all(outcome == ConvergeOutcome.created for _, outcome in report.outcomes)
    assert report.changed


def test_sync_validation_error_touches_nothing():
    store = InMemoryObjectStore()
    config = _make_config(AnalyzerSpec(ai=AISpec(backend="openai", engine="e1")))

    with pytest.raises(ValidationError):
        _make_sync(store).sync(config)

    assert store.calls == []


def test_sync_missing_secret_aborts_before_any_converge():
    store = InMemoryObjectStore()
    config = _make_config(AnalyzerSpec(ai=AISpec(secret=SecretRef(name="openai-key", key="token"))))

    with pytest.raises(ConfigurationError):
        _make_sync(store).sync(config)

    assert store.mutating_calls() == []


def test_sync_checks_every_referenced_secret():
    store = InMemoryObjectStore()
    store.put(_secret("openai-key"))
    config = _make_config(
        AnalyzerSpec(
            ai=AISpec(secret=SecretRef(name="openai-key", key="token")),
            kubeconfig=SecretRef(name="remote", key="value"),
        )
    )

    with pytest.raises(ConfigurationError, match="remote"):
        _make_sync(store).sync(config)

    store.put(_secret("remote"))
    _make_sync(store).sync(config)
    assert len(store.operations("create")) == 5


def test_partial_failure_keeps_earlier_objects_and_rerun_heals():
    store = InMemoryObjectStore()
    failure = StoreError("api server unavailable")
    store.failures[("create", "Deployment")] = failure
    sync = _make_sync(store)

    with pytest.raises(StoreError) as excinfo:
        sync.sync(_make_config())

    assert excinfo.value is failure
    kinds = {k.kind for k in store.objects}
    assert kinds == {"ServiceAccount", "ClusterRole", "ClusterRoleBinding", "Service"}

    del store.failures[("create", "Deployment")]
    report = sync.sync(_make_config())

    deployment_key = ObjectKey(kind="Deployment", namespace="ops", name="analyzer")
    assert report.outcome_for(deployment_key) == ConvergeOutcome.created
    assert [o for k, o in report.outcomes if k != deployment_key] == [ConvergeOutcome.unchanged] * 4


def test_teardown_is_idempotent():
    store = InMemoryObjectStore()
    sync = _make_sync(store)
    config = _make_config()
    sync.sync(config)

    first = sync.teardown(config)
    second = sync.teardown(config)

    assert store.objects == {}
    assert all(o == ConvergeOutcome.deleted for _, o in first.outcomes)
    assert all(o == ConvergeOutcome.absent for _, o in second.outcomes)
    assert [k.kind for k, _ in first.outcomes][0] == "Deployment"


def test_store_calls_carry_timeout():
    seen = []

    class _TimeoutStore(InMemoryObjectStore):
        def get(self, key, timeout=None):
            seen.append(timeout)
            return super().get(key, timeout)

    store = _TimeoutStore()
    Synchronizer(store, timeout_seconds=12.5).converge(_descriptor("Service"))

    assert seen == [12.5]
