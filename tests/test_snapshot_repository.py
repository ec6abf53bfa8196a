import json

import pytest

from src.repositories.exceptions import PersistenceError
from src.repositories.snapshot_repository import (
    InMemorySnapshotRepository,
    JsonFileSnapshotRepository,
    create_snapshot_repository,
)

SNAPSHOT = {"42": [{"role": "user", "content": "héllo", "timestamp": "2024-05-01T12:00:00+00:00"}]}


class TestJsonFileSnapshotRepository:
    def test_missing_file_loads_empty(self, tmp_path):
        assert JsonFileSnapshotRepository(str(tmp_path / "memory.json")).load() == {}

    def test_save_creates_directories_and_round_trips(self, tmp_path):
        path = tmp_path / "nested" / "memory.json"
        repository = JsonFileSnapshotRepository(str(path))

        repository.save(SNAPSHOT)

        assert repository.load() == SNAPSHOT
        assert json.loads(path.read_text(encoding="utf-8")) == SNAPSHOT

    def test_save_leaves_no_temporary_files(self, tmp_path):
        repository = JsonFileSnapshotRepository(str(tmp_path / "memory.json"))
        repository.save(SNAPSHOT)
        repository.save({})

        assert [p.name for p in tmp_path.iterdir()] == ["memory.json"]

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "memory.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError) as exc_info:
            JsonFileSnapshotRepository(str(path)).load()
        assert exc_info.value.path == str(path)

    def test_deeply_nested_file_raises(self, tmp_path):
        path = tmp_path / "memory.json"
        path.write_text("[" * 200000, encoding="utf-8")

        with pytest.raises(PersistenceError):
            JsonFileSnapshotRepository(str(path)).load()

    def test_non_object_root_raises(self, tmp_path):
        path = tmp_path / "memory.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(PersistenceError):
            JsonFileSnapshotRepository(str(path)).load()

    def test_failed_write_keeps_previous_snapshot(self, tmp_path):
        path = tmp_path / "memory.json"
        repository = JsonFileSnapshotRepository(str(path))
        repository.save(SNAPSHOT)

        with pytest.raises(PersistenceError):
            repository.save({"42": [{"content": object()}]})

        assert repository.load() == SNAPSHOT
        assert [p.name for p in tmp_path.iterdir()] == ["memory.json"]


def test_in_memory_repository_copies_snapshots():
    repository = InMemorySnapshotRepository()
    data = {"42": []}
    repository.save(data)
    data["42"].append({"content": "mutated"})

    assert repository.load() == {"42": []}
    assert repository.save_count == 1


def test_factory_picks_backend(tmp_path):
    assert isinstance(create_snapshot_repository(str(tmp_path / "m.json")), JsonFileSnapshotRepository)
    assert isinstance(create_snapshot_repository(""), InMemorySnapshotRepository)
