"""Tests for run counters, the build manifest and per-run log files."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from appstream_builder.observability import CounterRegistry
from appstream_builder.orchestration.manifest import BuildManifest, manifest_path
from appstream_builder.utils.logging import get_logger, logging_context, run_log


def test_counter_registry_tracks_increments() -> None:
    registry = CounterRegistry(run_id="test")
    registry.push_phase("Scan")
    registry.increment("packages_seen", 3)
    registry.increment("cache_hits")
    registry.increment("by_format", label="rpm")
    registry.increment("by_format", 2, label="deb")
    registry.pop_phase("Scan")

    snapshot = registry.snapshot()
    assert snapshot.run_id == "test"
    assert snapshot.counters["Scan"]["packages_seen"] == 3
    assert snapshot.counters["Scan"]["cache_hits"] == 1
    assert snapshot.counters["Scan"]["by_format"] == {"deb": 2, "rpm": 1}
    assert snapshot.counters["Tasks"]["completed"] == 0


def test_phase_context_sets_implicit_target() -> None:
    registry = CounterRegistry()

    with registry.phase("Merge"):
        assert registry.current_phase() == "Merge"
        registry.increment("groups")

    assert registry.current_phase() is None
    assert registry.get("groups", phase="Merge") == 1


def test_counter_registry_rejects_bad_usage() -> None:
    registry = CounterRegistry()

    with pytest.raises(RuntimeError):
        registry.increment("groups")
    with pytest.raises(KeyError):
        registry.increment("groups", phase="Tasks")
    with pytest.raises(KeyError):
        registry.push_phase("Nope")
    with pytest.raises(ValueError):
        registry.increment("by_format", phase="Scan")
    with pytest.raises(ValueError):
        registry.increment("completed", phase="Tasks", label="deb")
    registry.push_phase("Scan")
    with pytest.raises(RuntimeError):
        registry.pop_phase("Tasks")


def test_counter_registry_is_thread_safe() -> None:
    registry = CounterRegistry()

    def _bump() -> None:
        for _ in range(500):
            registry.increment("completed", phase="Tasks")

    threads = [threading.Thread(target=_bump) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert registry.get("completed", phase="Tasks") == 4000


def test_build_manifest_writes_json(settings_factory, tmp_path: Path) -> None:
    settings = settings_factory()
    counters = CounterRegistry(run_id="run-1")
    counters.increment("scheduled", 2, phase="Tasks")
    manifest = BuildManifest("run-1")
    manifest.collect_versions(settings=settings)
    manifest.capture_configuration(settings=settings)
    manifest.capture_counters(counters)
    manifest.record_timing("tasks", 0.12345)
    manifest.add_artifact(tmp_path / "out" / "fedora-21.json.gz", kind="catalog")

    path = manifest.write(tmp_path / "out", "fedora-21")

    assert path == manifest_path(tmp_path / "out", "fedora-21")
    payload = json.loads(path.read_text())
    assert payload["run_id"] == "run-1"
    assert payload["versions"]["environment"] == "development"
    assert payload["configuration"]["policies"]["output"]["basename"] == "fedora-21"
    assert payload["statistics"]["Tasks"]["scheduled"] == 2
    assert payload["performance"]["tasks"] == 0.123
    assert payload["artifacts"][0]["kind"] == "catalog"
    assert "finished_at" in payload


def test_run_log_keeps_only_records_of_its_run(tmp_path: Path) -> None:
    log = get_logger(module="tests")

    with run_log(tmp_path, "run-a") as path:
        with logging_context(run_id="run-a", package="demo"):
            log.info("kept message")
        with logging_context(run_id="run-b"):
            log.info("other run")
        log.info("no run bound")
    log.bind(run_id="run-a").info("after the sink is gone")

    text = path.read_text()
    assert path == tmp_path / "runs" / "run-a.log"
    assert "kept message" in text
    assert "| demo |" in text
    assert "other run" not in text
    assert "no run bound" not in text
    assert "after the sink is gone" not in text
