from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from insuretrack.errors import NotFoundError, StorageUnavailableError
from insuretrack.services.expiry import utc_now_iso
from insuretrack.storage.base import Entry, LogEntry, StorageAdapter

logger = logging.getLogger("insuretrack.storage.mongo")

INSURANCE_COLLECTION = "insurance"
EMAIL_LOGS_COLLECTION = "emailLogs"

_CREDENTIALS = re.compile(r"(//[^:/@]+:)[^@]*@")


def id_candidates(item_id: Any) -> List[Any]:
    """
    Lookup keys for an id the caller may hold as ObjectId or as a string.

    The ObjectId form comes first; the exact string follows so documents
    inserted with string `_id`s still resolve.
    """
    if isinstance(item_id, ObjectId):
        return [item_id, str(item_id)]

    text = str(item_id)
    candidates: List[Any] = []
    if ObjectId.is_valid(text):
        candidates.append(ObjectId(text))
    candidates.append(text)
    return candidates


def _serialize(doc: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    data = {k: v for k, v in doc.items() if k != "_id"}
    data["id"] = str(doc["_id"])
    return data


def safe_uri(uri: str) -> str:
    """MongoDB URI with the password masked, for logging."""
    return _CREDENTIALS.sub(r"\1***@", uri)


class MongoStorage(StorageAdapter):
    mode = "mongodb"

    def __init__(self, client: MongoClient, database_name: str) -> None:
        self.client = client
        self.db = client[database_name]
        self.database_name = database_name

    @property
    def insurance(self) -> Collection:
        return self.db[INSURANCE_COLLECTION]

    @property
    def email_logs(self) -> Collection:
        return self.db[EMAIL_LOGS_COLLECTION]

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self) -> List[Entry]:
        try:
            return [_serialize(doc) for doc in self.insurance.find({})]
        except PyMongoError:
            logger.exception("Error getting insurance data")
            return []

    def get_entry(self, entry_id: str) -> Entry:
        try:
            for candidate in id_candidates(entry_id):
                doc = self.insurance.find_one({"_id": candidate})
                if doc is not None:
                    return _serialize(doc)
        except PyMongoError as exc:
            logger.exception("Error getting insurance entry %s", entry_id)
            raise StorageUnavailableError("Database read failed") from exc
        raise NotFoundError("Entry", entry_id)

    def _stamp(self, entry: Mapping[str, Any]) -> Dict[str, Any]:
        now = utc_now_iso()
        doc = {k: v for k, v in entry.items() if k not in ("id", "_id")}
        doc["createdAt"] = now
        doc["updatedAt"] = now
        return doc

    def add_entry(self, entry: Mapping[str, Any]) -> Entry:
        doc = self._stamp(entry)
        try:
            result = self.insurance.insert_one(doc)
        except PyMongoError as exc:
            logger.exception("Error adding insurance entry")
            raise StorageUnavailableError("Database write failed") from exc
        doc["_id"] = result.inserted_id
        logger.info("Added entry %s", result.inserted_id)
        return _serialize(doc)

    def update_entry(self, entry_id: str, changes: Mapping[str, Any]) -> Entry:
        update = {k: v for k, v in changes.items() if k not in ("id", "_id")}
        update["updatedAt"] = utc_now_iso()

        try:
            for candidate in id_candidates(entry_id):
                doc = self.insurance.find_one_and_update(
                    {"_id": candidate},
                    {"$set": update},
                    return_document=ReturnDocument.AFTER,
                )
                if doc is not None:
                    logger.info("Updated entry %s", entry_id)
                    return _serialize(doc)
        except PyMongoError as exc:
            logger.exception("Error updating insurance entry %s", entry_id)
            raise StorageUnavailableError("Database write failed") from exc

        raise NotFoundError("Entry", entry_id)

    def delete_entry(self, entry_id: str) -> None:
        try:
            for candidate in id_candidates(entry_id):
                if self.insurance.delete_one({"_id": candidate}).deleted_count:
                    logger.info("Deleted entry %s", entry_id)
                    return
        except PyMongoError as exc:
            logger.exception("Error deleting insurance entry %s", entry_id)
            raise StorageUnavailableError("Database write failed") from exc

        raise NotFoundError("Entry", entry_id)

    def bulk_add_entries(self, entries: List[Mapping[str, Any]]) -> List[Entry]:
        if not entries:
            return []
        docs = [self._stamp(entry) for entry in entries]
        try:
            result = self.insurance.insert_many(docs)
        except PyMongoError as exc:
            logger.exception("Error bulk adding insurance data")
            raise StorageUnavailableError("Database write failed") from exc

        for doc, inserted_id in zip(docs, result.inserted_ids):
            doc["_id"] = inserted_id
        logger.info("Bulk added %d entries", len(docs))
        return [_serialize(doc) for doc in docs]

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def list_logs(self) -> List[LogEntry]:
        try:
            cursor = self.email_logs.find({}).sort("timestamp", DESCENDING)
            return [_serialize(doc) for doc in cursor]
        except PyMongoError:
            logger.exception("Error getting email logs")
            return []

    def add_log(self, log: Mapping[str, Any]) -> LogEntry:
        doc = {k: v for k, v in log.items() if k not in ("id", "_id")}
        doc.setdefault("timestamp", utc_now_iso())
        try:
            result = self.email_logs.insert_one(doc)
        except PyMongoError as exc:
            logger.exception("Error adding email log")
            raise StorageUnavailableError("Database write failed") from exc
        doc["_id"] = result.inserted_id
        return _serialize(doc)

    def delete_log(self, log_id: str) -> None:
        try:
            for candidate in id_candidates(log_id):
                if self.email_logs.delete_one({"_id": candidate}).deleted_count:
                    return
        except PyMongoError as exc:
            logger.exception("Error deleting email log %s", log_id)
            raise StorageUnavailableError("Database write failed") from exc

        raise NotFoundError("Log", log_id)

    def clear_logs(self) -> int:
        try:
            removed = self.email_logs.delete_many({}).deleted_count
        except PyMongoError as exc:
            logger.exception("Error clearing email logs")
            raise StorageUnavailableError("Database write failed") from exc
        logger.info("Cleared %d email logs", removed)
        return removed

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        try:
            self.client.admin.command("ping")
        except PyMongoError:
            logger.warning("MongoDB ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.client.close()
        logger.info("Disconnected from MongoDB")


def connect_mongo(uri: str, database_name: str, timeout_ms: int = 5000) -> MongoStorage:
    """
    Open a client and verify the server answers a ping.

    Raises PyMongoError when the server is unreachable within `timeout_ms`.
    """
    client: MongoClient = MongoClient(
        uri,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
    )
    try:
        client.admin.command("ping")
    except PyMongoError:
        client.close()
        raise

    logger.info("Connected to MongoDB at %s (db=%s)", safe_uri(uri), database_name)
    return MongoStorage(client, database_name)
