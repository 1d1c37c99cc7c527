"""FastAPI dependencies for the resources `create_app` wires onto app.state."""

from __future__ import annotations

from fastapi import Request

from insuretrack.config import Settings
from insuretrack.email.service import EmailDispatcher
from insuretrack.errors import StorageUnavailableError
from insuretrack.storage.base import StorageAdapter


def get_storage(request: Request) -> StorageAdapter:
    """The storage backend selected at startup."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise StorageUnavailableError("Storage is not initialised")
    return storage


def get_dispatcher(request: Request) -> EmailDispatcher:
    return request.app.state.dispatcher


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
