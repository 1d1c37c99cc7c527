"""Storage backends for insurance entries and email logs.

`init_storage` picks the backend once at startup: MongoDB when MONGODB_URI
is set and reachable, otherwise JSON files under DATA_DIR.
"""

from __future__ import annotations

import logging

from pymongo.errors import PyMongoError

from insuretrack.config import Settings
from insuretrack.storage.base import StorageAdapter
from insuretrack.storage.file_store import FileStorage
from insuretrack.storage.mongo_store import MongoStorage, connect_mongo, safe_uri

logger = logging.getLogger("insuretrack.storage")

__all__ = [
    "FileStorage",
    "MongoStorage",
    "StorageAdapter",
    "init_storage",
]


def init_storage(settings: Settings) -> StorageAdapter:
    """
    Select the storage backend for this process.

    A MongoDB connection failure is not fatal: the process continues on
    file storage and logs which mode is active.
    """
    if settings.mongodb_uri:
        try:
            storage: StorageAdapter = connect_mongo(
                settings.mongodb_uri,
                settings.database_name,
                timeout_ms=settings.mongodb_timeout_ms,
            )
            logger.info("Storage mode: MongoDB (db=%s)", settings.database_name)
            return storage
        except PyMongoError as exc:
            logger.error(
                "MongoDB connection to %s failed (%s); falling back to file storage.",
                safe_uri(settings.mongodb_uri),
                exc,
            )
    else:
        logger.warning("MONGODB_URI not configured; using file storage.")

    storage = FileStorage(settings.data_dir)
    logger.info("Storage mode: file (%s)", settings.data_dir)
    return storage

