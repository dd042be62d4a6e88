from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from servectl.core.exceptions import PortInUseError
from servectl.core.server import ProcessRegistry, ServerInstance


@pytest.fixture
def alive() -> set[int]:
    return {100, 200}


@pytest.fixture
def registry(tmp_path: Path, alive: set[int]) -> ProcessRegistry:
    return ProcessRegistry(tmp_path / "pids", is_live=lambda record: record.pid in alive)


def _instance(port: int, pid: int, directory: Path) -> ServerInstance:
    return ServerInstance(
        pid=pid,
        port=port,
        directory=directory,
        log_path=directory / f"server_{port}.log",
        started_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        bind_address="127.0.0.1",
    )


def test_record_writes_one_json_file_per_port(registry: ProcessRegistry, tmp_path: Path) -> None:
    stored = registry.record(_instance(8000, 100, tmp_path))

    path = tmp_path / "pids" / "server_8000.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["pid"] == 100
    assert data["port"] == 8000
    assert data["directory"] == str(tmp_path)
    assert data["started_at"] == "2024-05-01T12:00:00Z"
    assert stored.tracked is True


def test_lookup_returns_recorded_instance(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 100, tmp_path))

    found = registry.lookup(8000)
    assert found is not None
    assert (found.pid, found.port, found.directory) == (100, 8000, tmp_path)
    assert found.bind_address == "127.0.0.1"
    assert found.tracked
    assert registry.lookup(8001) is None


def test_record_overwrites_same_port(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 100, tmp_path))
    registry.record(_instance(8000, 200, tmp_path))
    assert registry.lookup(8000).pid == 200
    assert len(registry.list_all()) == 1


def test_record_without_replace_refuses_live_conflict(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 100, tmp_path))
    with pytest.raises(PortInUseError):
        registry.record(_instance(8000, 200, tmp_path), replace=False)
    assert registry.lookup(8000).pid == 100


def test_record_without_replace_reclaims_dead_record(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 999, tmp_path))
    registry.record(_instance(8000, 100, tmp_path), replace=False)
    assert registry.lookup(8000).pid == 100


def test_corrupt_record_is_treated_as_absent(
    registry: ProcessRegistry, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    registry.registry_dir.mkdir(parents=True)
    (registry.registry_dir / "server_8000.json").write_text("{not json", encoding="utf-8")
    (registry.registry_dir / "server_8001.json").write_text('{"pid": "x"}', encoding="utf-8")
    registry.record(_instance(8002, 100, tmp_path))

    with caplog.at_level(logging.WARNING):
        assert registry.lookup(8000) is None
        assert [i.port for i in registry.list_all()] == [8002]
    assert any("registry record" in rec.message for rec in caplog.records)


def test_record_whose_port_does_not_match_file_name_is_ignored(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.registry_dir.mkdir(parents=True)
    (registry.registry_dir / "server_8000.json").write_text(
        json.dumps({"pid": 100, "port": 9000, "directory": str(tmp_path)}), encoding="utf-8"
    )
    assert registry.list_all() == []


def test_list_all_is_sorted_by_port(registry: ProcessRegistry, tmp_path: Path) -> None:
    for port, pid in ((9000, 100), (8000, 200), (8500, 300)):
        registry.record(_instance(port, pid, tmp_path))
    assert [i.port for i in registry.list_all()] == [8000, 8500, 9000]


def test_lookup_pid(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 100, tmp_path))
    registry.record(_instance(8001, 200, tmp_path))
    assert registry.lookup_pid(200).port == 8001
    assert registry.lookup_pid(300) is None


def test_remove(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 100, tmp_path))
    assert registry.remove(8000) is True
    assert registry.remove(8000) is False
    assert registry.lookup(8000) is None


def test_reconcile_removes_exactly_dead_records(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 100, tmp_path))
    registry.record(_instance(8001, 555, tmp_path))
    registry.record(_instance(8002, 200, tmp_path))
    registry.record(_instance(8003, 666, tmp_path))

    removed = registry.reconcile()

    assert sorted(i.pid for i in removed) == [555, 666]
    assert [i.port for i in registry.list_all()] == [8000, 8002]


def test_reconcile_on_missing_directory_is_a_no_op(registry: ProcessRegistry) -> None:
    assert registry.reconcile() == []


def test_purge_deletes_every_record_file(registry: ProcessRegistry, tmp_path: Path) -> None:
    registry.record(_instance(8000, 100, tmp_path))
    registry.record(_instance(8001, 200, tmp_path))
    (registry.registry_dir / "server_8002.json").write_text("garbage", encoding="utf-8")

    assert registry.purge() == 3
    assert list(registry.registry_dir.iterdir()) == []
