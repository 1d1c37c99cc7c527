"""
JSON-file storage backend.

Entries and logs live in two JSON arrays under DATA_DIR:

    DATA_DIR/insurance.json
    DATA_DIR/email-logs.json

Every mutation loads the whole array and rewrites it through a temp
file and an atomic rename. There is no lock, so two concurrent writers can
lose one another's update; this backend is the small-scale fallback for
when MongoDB is not configured.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, List, Mapping

from insuretrack.errors import NotFoundError, StorageUnavailableError
from insuretrack.services.expiry import utc_now_iso
from insuretrack.storage.base import Entry, LogEntry, StorageAdapter

logger = logging.getLogger("insuretrack.storage.file")


def _new_id() -> str:
    return uuid.uuid4().hex


class FileStorage(StorageAdapter):
    mode = "file"

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.insurance_file = self.data_dir / "insurance.json"
        self.logs_file = self.data_dir / "email-logs.json"

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("Could not create data directory %s", self.data_dir)

        logger.info("File storage ready at %s", self.data_dir.resolve())

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def _load(self, path: Path) -> List[dict]:
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("Failed to read %s; treating it as empty", path)
            return []

        if not isinstance(data, list):
            logger.error("%s does not hold a JSON array; treating it as empty", path)
            return []
        return data

    def _save(self, path: Path, data: List[dict]) -> None:
        """Write to a sibling temp file, then swap it in; readers never see a partial array."""
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, allow_nan=False)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            logger.exception("Failed to write %s", path)
            tmp_path.unlink(missing_ok=True)
            raise StorageUnavailableError(f"Could not write {path.name}") from exc

    @staticmethod
    def _index_of(items: List[dict], item_id: str) -> int:
        return next(
            (i for i, item in enumerate(items) if str(item.get("id")) == str(item_id)),
            -1,
        )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self) -> List[Entry]:
        return self._load(self.insurance_file)

    def get_entry(self, entry_id: str) -> Entry:
        items = self._load(self.insurance_file)
        idx = self._index_of(items, entry_id)
        if idx == -1:
            raise NotFoundError("Entry", entry_id)
        return items[idx]

    def _stamp(self, entry: Mapping[str, Any]) -> Entry:
        now = utc_now_iso()
        return {**entry, "id": _new_id(), "createdAt": now, "updatedAt": now}

    def add_entry(self, entry: Mapping[str, Any]) -> Entry:
        items = self._load(self.insurance_file)
        new_entry = self._stamp(entry)
        items.append(new_entry)
        self._save(self.insurance_file, items)
        logger.info("Added entry %s", new_entry["id"])
        return new_entry

    def update_entry(self, entry_id: str, changes: Mapping[str, Any]) -> Entry:
        items = self._load(self.insurance_file)
        idx = self._index_of(items, entry_id)
        if idx == -1:
            raise NotFoundError("Entry", entry_id)

        item = {**items[idx], **changes}
        item["id"] = items[idx]["id"]
        item["updatedAt"] = utc_now_iso()

        items[idx] = item
        self._save(self.insurance_file, items)
        logger.info("Updated entry %s (%s)", entry_id, ", ".join(sorted(changes)))
        return item

    def delete_entry(self, entry_id: str) -> None:
        items = self._load(self.insurance_file)
        idx = self._index_of(items, entry_id)
        if idx == -1:
            raise NotFoundError("Entry", entry_id)
        items.pop(idx)
        self._save(self.insurance_file, items)
        logger.info("Deleted entry %s", entry_id)

    def bulk_add_entries(self, entries: List[Mapping[str, Any]]) -> List[Entry]:
        items = self._load(self.insurance_file)
        new_entries = [self._stamp(entry) for entry in entries]
        items.extend(new_entries)
        self._save(self.insurance_file, items)
        logger.info("Bulk added %d entries", len(new_entries))
        return new_entries

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def list_logs(self) -> List[LogEntry]:
        logs = self._load(self.logs_file)
        return sorted(logs, key=lambda log: str(log.get("timestamp", "")), reverse=True)

    def add_log(self, log: Mapping[str, Any]) -> LogEntry:
        logs = self._load(self.logs_file)
        record = dict(log)
        record.setdefault("id", _new_id())
        record.setdefault("timestamp", utc_now_iso())
        logs.insert(0, record)
        self._save(self.logs_file, logs)
        return record

    def delete_log(self, log_id: str) -> None:
        logs = self._load(self.logs_file)
        idx = self._index_of(logs, log_id)
        if idx == -1:
            raise NotFoundError("Log", log_id)
        logs.pop(idx)
        self._save(self.logs_file, logs)

    def clear_logs(self) -> int:
        removed = len(self._load(self.logs_file))
        self._save(self.logs_file, [])
        logger.info("Cleared %d email logs", removed)
        return removed

    def is_connected(self) -> bool:
        return False
