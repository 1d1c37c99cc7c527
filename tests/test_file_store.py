import json

import pytest

from insuretrack.errors import NotFoundError, StorageUnavailableError
from insuretrack.storage import FileStorage, file_store


def test_add_assigns_id_and_timestamps(storage, asha):
    entry = storage.add_entry(asha)

    assert entry["id"]
    assert entry["createdAt"] == entry["updatedAt"]
    assert entry["createdAt"].endswith("Z")
    assert storage.list_entries() == [entry]


def test_entries_persist_across_instances(storage, asha, tmp_path):
    entry = storage.add_entry(asha)
    reopened = FileStorage(tmp_path / "data")
    assert reopened.get_entry(entry["id"]) == entry


def test_update_merges_and_keeps_identity(storage, asha, monkeypatch):
    monkeypatch.setattr(file_store, "utc_now_iso", lambda: "2025-01-05T08:00:00.000Z")
    entry = storage.add_entry(asha)
    monkeypatch.setattr(file_store, "utc_now_iso", lambda: "2025-01-06T09:30:00.000Z")
    updated = storage.update_entry(entry["id"], {"phone": "111", "id": "hijack"})

    assert updated["id"] == entry["id"]
    assert updated["phone"] == "111"
    assert updated["name"] == "Asha"
    assert updated["createdAt"] == entry["createdAt"]
    assert updated["createdAt"] == "2025-01-05T08:00:00.000Z"
    assert updated["updatedAt"] == "2025-01-06T09:30:00.000Z"
    assert storage.get_entry(entry["id"])["updatedAt"] == "2025-01-06T09:30:00.000Z"


def test_update_missing_entry_changes_nothing(storage, asha):
    storage.add_entry(asha)
    before = storage.insurance_file.read_text(encoding="utf-8")

    with pytest.raises(NotFoundError):
        storage.update_entry("missing", {"name": "Nobody"})

    assert storage.insurance_file.read_text(encoding="utf-8") == before


def test_delete_entry(storage, asha):
    entry = storage.add_entry(asha)
    storage.delete_entry(entry["id"])

    assert storage.list_entries() == []
    with pytest.raises(NotFoundError):
        storage.delete_entry(entry["id"])


def test_bulk_add_gives_each_entry_an_id(storage, asha):
    inserted = storage.bulk_add_entries([asha, {**asha, "name": "Ravi"}])

    assert len(inserted) == 2
    assert len({e["id"] for e in inserted}) == 2
    assert [e["name"] for e in storage.list_entries()] == ["Asha", "Ravi"]


def test_corrupt_file_reads_as_empty(storage):
    storage.insurance_file.write_text("{not json", encoding="utf-8")
    assert storage.list_entries() == []


def test_non_array_file_reads_as_empty(storage):
    storage.insurance_file.write_text(json.dumps({"a": 1}), encoding="utf-8")
    assert storage.list_entries() == []


def test_write_failure_raises(storage, asha, monkeypatch):
    def broken_open(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("builtins.open", broken_open)
    with pytest.raises(StorageUnavailableError):
        storage.add_entry(asha)


def test_logs_are_listed_newest_first(storage):
    storage.add_log({"recipient": "a@example.com", "timestamp": "2025-01-05T08:00:00.000Z"})
    storage.add_log({"recipient": "b@example.com", "timestamp": "2025-01-06T08:00:00.000Z"})
    storage.add_log({"recipient": "c@example.com", "timestamp": "2025-01-04T08:00:00.000Z"})

    assert [log["recipient"] for log in storage.list_logs()] == [
        "b@example.com",
        "a@example.com",
        "c@example.com",
    ]


def test_delete_and_clear_logs(storage):
    first = storage.add_log({"recipient": "a@example.com"})
    storage.add_log({"recipient": "b@example.com"})

    storage.delete_log(first["id"])
    assert len(storage.list_logs()) == 1

    with pytest.raises(NotFoundError):
        storage.delete_log(first["id"])

    assert storage.clear_logs() == 1
    assert storage.list_logs() == []


def test_file_storage_reports_disconnected(storage):
    assert storage.mode == "file"
    assert storage.is_connected() is False


def test_failed_write_keeps_previous_file(storage, asha, monkeypatch):
    first = storage.add_entry(asha)
    before = storage.insurance_file.read_text(encoding="utf-8")

    def half_dump(data, f, **kwargs):
        f.write("[{")
        raise ValueError("serialisation failed")

    monkeypatch.setattr(file_store.json, "dump", half_dump)
    with pytest.raises(StorageUnavailableError):
        storage.add_entry({**asha, "name": "Ravi"})
    monkeypatch.undo()

    assert storage.insurance_file.read_text(encoding="utf-8") == before
    assert storage.list_entries() == [first]
    assert list(storage.data_dir.glob("*.tmp")) == []


def test_non_finite_numbers_are_never_written(storage, asha):
    with pytest.raises(StorageUnavailableError):
        storage.add_entry({**asha, "premium": float("nan")})
    assert storage.list_entries() == []
