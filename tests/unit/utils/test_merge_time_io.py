from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from servectl.core.utils.io import ensure_directory, read_json, read_yaml, write_json_atomic
from servectl.core.utils.merge import deep_merge
from servectl.core.utils.time import file_stamp, from_epoch, parse_iso8601, utc_timestamp


def test_deep_merge_nested_without_mutation() -> None:
    base = {"server": {"default_port": 8000, "module": "http.server"}, "paths": {"log_dir": "a"}}
    override = {"server": {"default_port": 9000}, "logging": {"level": "DEBUG"}}

    merged = deep_merge(base, override)

    assert merged == {
        "server": {"default_port": 9000, "module": "http.server"},
        "paths": {"log_dir": "a"},
        "logging": {"level": "DEBUG"},
    }
    assert base["server"]["default_port"] == 8000


def test_deep_merge_scalars_replace_mappings() -> None:
    assert deep_merge({"a": {"b": 1}}, {"a": None}) == {"a": None}


def test_utc_timestamp_and_parse() -> None:
    dt = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert utc_timestamp(dt) == "2024-05-01T12:00:00Z"
    assert parse_iso8601("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert parse_iso8601("2024-05-01T12:00:00").tzinfo == timezone.utc


def test_from_epoch_drops_microseconds() -> None:
    assert from_epoch(0.75) == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_file_stamp_format() -> None:
    stamp = file_stamp(datetime(2024, 5, 1, 12, 0, 5, tzinfo=timezone.utc))
    assert len(stamp) == 15 and stamp[8] == "_" and stamp.replace("_", "").isdigit()


def test_json_round_trip_is_atomic(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "server_8000.json"
    write_json_atomic(target, {"pid": 1, "port": 8000})

    assert read_json(target) == {"pid": 1, "port": 8000}
    assert json.loads(target.read_text(encoding="utf-8")) == {"pid": 1, "port": 8000}
    assert [p.name for p in target.parent.iterdir()] == ["server_8000.json"]


def test_read_json_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_json(tmp_path / "nope.json")


def test_read_yaml(tmp_path: Path) -> None:
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert read_yaml(empty, default={"k": 1}) == {"k": 1}

    broken = tmp_path / "broken.yaml"
    broken.write_text("a: [", encoding="utf-8")
    with pytest.raises(yaml.YAMLError):
        read_yaml(broken)
    with pytest.raises(FileNotFoundError):
        read_yaml(tmp_path / "missing.yaml")


def test_ensure_directory(tmp_path: Path) -> None:
    created = ensure_directory(tmp_path / "a" / "b")
    assert created.is_dir()
    afile = tmp_path / "file"
    afile.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        ensure_directory(afile)
