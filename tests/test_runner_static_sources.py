from __future__ import annotations

import json
from pathlib import Path

from analyzer_operator.core.settings import OperatorSettings
from analyzer_operator.core.types import ObjectKey
from analyzer_operator.driver.reconciler import PassOutcome
from analyzer_operator.driver.runner import OperatorRunner, RunnerConfig
from analyzer_operator.store.memory import InMemoryObjectStore
from analyzer_operator.trigger.queue_source import QueueTriggerSource
from analyzer_operator.trigger.static_source import StaticTriggerSource


def _analyzer(name: str) -> dict:
    return {
        "apiVersion": "core.analyzer.dev/v1alpha1",
        "kind": "Analyzer",
        "metadata": {"name": name, "namespace": "ops", "uid": f"uid-{name}"},
        "spec": {"ai": {"backend": "openai", "model": "gpt-4"}},
    }


def test_runner_cycle_with_static_events(tmp_path: Path):
    events_path = tmp_path / "events.json"
    events_path.write_text(
        json.dumps(
            {
                "events": [
                    {"namespace": "ops", "name": "analyzer"},
                    {"namespace": "ops"},
                    {"namespace": "ops", "name": "missing"},
                ]
            }
        ),
        encoding="utf-8",
    )

    store = InMemoryObjectStore()
    store.put(_analyzer("analyzer"))

    runner = OperatorRunner(
        store=store,
        trigger_source=StaticTriggerSource(path=events_path),
        settings=OperatorSettings(local_mode=True),
        config=RunnerConfig(interval_seconds=0),
    )

    results = runner.run_cycle()

    assert [r.outcome for r in results] == [PassOutcome.completed, PassOutcome.absent]
    assert ObjectKey(kind="Deployment", namespace="ops", name="analyzer") in store.objects
    assert runner.channel.capacity == 10


def test_static_source_accepts_single_event(tmp_path: Path):
    path = tmp_path / "event.json"
    path.write_text(json.dumps({"namespace": "ops", "name": "analyzer"}), encoding="utf-8")

    events = StaticTriggerSource(path=path).fetch()

    assert [str(e.ref) for e in events] == ["ops/analyzer"]


def test_queue_source_collapses_pending_duplicates():
    source = QueueTriggerSource()
    source.push("ops", "a")
    source.push("ops", "b")
    source.push("ops", "a")

    assert len(source) == 2
    assert [(e.namespace, e.name) for e in source.fetch()] == [("ops", "a"), ("ops", "b")]
    assert source.fetch() == []


def test_runner_settings_from_env(monkeypatch):
    monkeypatch.setenv("LOCAL_MODE", "1")
    monkeypatch.setenv("OPERATOR_SIGNAL_CAPACITY", "4")
    store = InMemoryObjectStore()
    store.put(_analyzer("analyzer"))
    source = QueueTriggerSource()
    source.push("ops", "analyzer")

    runner = OperatorRunner(store=store, trigger_source=source)
    results = runner.run_cycle()

    assert runner.channel.capacity == 4
    assert results[0].outcome == PassOutcome.completed


class _TimingOutStore(InMemoryObjectStore):
    def get(self, key, timeout=None):
        if key.kind == "Analyzer" and key.name == "broken":
            raise TimeoutError("read timed out")
        return super().get(key, timeout)


def test_cycle_continues_after_unexpected_error():
    store = _TimingOutStore()
    store.put(_analyzer("healthy"))
    source = QueueTriggerSource()
    source.push("ops", "broken")
    source.push("ops", "healthy")

    runner = OperatorRunner(store=store, trigger_source=source, settings=OperatorSettings(local_mode=True))
    results = runner.run_cycle()

    assert [r.outcome for r in results] == [PassOutcome.failed, PassOutcome.completed]
    assert isinstance(results[0].error, TimeoutError)
    assert ObjectKey(kind="Deployment", namespace="ops", name="healthy") in store.objects
