from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from servectl.core.exceptions import NotFoundError
from servectl.core.server import LogStore


@pytest.fixture
def store(tmp_path: Path) -> LogStore:
    return LogStore(tmp_path / "logs")


def _age(path: Path, seconds: float) -> None:
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


def test_new_log_path_is_named_by_port_and_time(store: LogStore) -> None:
    when = datetime(2024, 5, 1, 12, 30, 15, tzinfo=timezone.utc)
    path = store.new_log_path(8000, when)
    local = when.astimezone()
    assert path.parent == store.log_dir
    assert path.name == f"server_8000_{local:%Y%m%d_%H%M%S}.log"
    assert store.log_dir.is_dir()


def test_new_log_path_never_reuses_an_existing_file(store: LogStore) -> None:
    when = datetime(2024, 5, 1, 12, 30, 15, tzinfo=timezone.utc)
    first = store.new_log_path(8000, when)
    first.write_text("a", encoding="utf-8")
    second = store.new_log_path(8000, when)
    second.write_text("b", encoding="utf-8")
    third = store.new_log_path(8000, when)

    assert len({first, second, third}) == 3
    assert second.stem == f"{first.stem}_1"
    assert third.stem == f"{first.stem}_2"


def test_list_logs_newest_first_and_ignores_other_files(store: LogStore) -> None:
    store.log_dir.mkdir()
    older = store.log_dir / "server_8000_20240101_000000.log"
    newer = store.log_dir / "server_8001_20240102_000000.log"
    older.write_text("old\n", encoding="utf-8")
    newer.write_text("new\n", encoding="utf-8")
    (store.log_dir / "servectl.log").write_text("manager\n", encoding="utf-8")
    _age(older, 3600)

    logs = store.list_logs()

    assert [log.path for log in logs] == [newer, older]
    assert logs[0].size == 4
    assert store.count() == 2


def test_list_logs_without_directory(store: LogStore) -> None:
    assert store.list_logs() == []


def test_tail_returns_last_lines(store: LogStore, tmp_path: Path) -> None:
    path = tmp_path / "server.log"
    path.write_text("".join(f"line {i}\n" for i in range(100)), encoding="utf-8")

    assert store.tail(path, 3) == ["line 97", "line 98", "line 99"]
    assert store.tail(path, 0) == []
    assert len(store.tail(path)) == 50


def test_tail_of_short_file(store: LogStore, tmp_path: Path) -> None:
    path = tmp_path / "server.log"
    path.write_text("only\n", encoding="utf-8")
    assert store.tail(path, 10) == ["only"]


def test_follow_from_start_until_stopped(store: LogStore, tmp_path: Path) -> None:
    path = tmp_path / "server.log"
    path.write_text("a\nb\npartial", encoding="utf-8")

    lines = list(store.follow(path, poll_interval=0, stop=lambda: True, from_start=True))

    assert lines == ["a", "b", "partial"]


def test_follow_picks_up_appended_lines(store: LogStore, tmp_path: Path) -> None:
    path = tmp_path / "server.log"
    path.write_text("existing\n", encoding="utf-8")
    polls = []

    def stop() -> bool:
        polls.append(1)
        if len(polls) == 1:
            with open(path, "a", encoding="utf-8") as fh:
                fh.write("GET / 200\n")
            return False
        return True

    assert list(store.follow(path, poll_interval=0, stop=stop)) == ["GET / 200"]


def test_prune_removes_only_old_logs(store: LogStore) -> None:
    store.log_dir.mkdir()
    old = store.log_dir / "server_8000_a.log"
    recent = store.log_dir / "server_8001_b.log"
    old.write_text("x", encoding="utf-8")
    recent.write_text("y", encoding="utf-8")
    _age(old, 8 * 86400)
    _age(recent, 6 * 86400)

    assert store.prune(7) == [old]
    assert recent.exists()


def test_prune_with_explicit_now(store: LogStore) -> None:
    store.log_dir.mkdir()
    log = store.log_dir / "server_8000_a.log"
    log.write_text("x", encoding="utf-8")
    future = datetime.now(timezone.utc) + timedelta(days=10)
    assert store.prune(7, now=future) == [log]


def test_purge_removes_every_server_log(store: LogStore) -> None:
    store.log_dir.mkdir()
    for name in ("server_8000_a.log", "server_8001_b.log"):
        (store.log_dir / name).write_text("x", encoding="utf-8")
    keep = store.log_dir / "servectl.log"
    keep.write_text("manager", encoding="utf-8")

    assert len(store.purge()) == 2
    assert store.list_logs() == []
    assert keep.exists()


def test_reading_a_removed_log_is_not_found(store: LogStore) -> None:
    path = store.new_log_path(8000)
    path.write_text("GET / 200\n", encoding="utf-8")
    [listed] = store.list_logs()
    path.unlink()

    with pytest.raises(NotFoundError) as exc_info:
        store.tail(listed.path)
    assert exc_info.value.context == {"path": str(path)}
    with pytest.raises(NotFoundError):
        next(store.follow(listed.path))
