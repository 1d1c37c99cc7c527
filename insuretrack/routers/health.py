from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from insuretrack.config import Settings
from insuretrack.deps import get_app_settings, get_dispatcher, get_storage
from insuretrack.email.service import EmailDispatcher
from insuretrack.services.expiry import utc_now_iso
from insuretrack.storage.base import StorageAdapter

router = APIRouter(prefix="/health", tags=["health"])


def _database_state(storage: StorageAdapter) -> str:
    if storage.mode == "mongodb" and storage.is_connected():
        return "Connected"
    return "Disconnected"


@router.get("", summary="Liveness and storage mode")
def health(storage: StorageAdapter = Depends(get_storage)) -> Dict[str, Any]:
    return {
        "status": "OK",
        "database": _database_state(storage),
        "storage": storage.mode,
        "timestamp": utc_now_iso(),
    }


@router.get("/status", summary="Detailed service status")
def health_status(
    storage: StorageAdapter = Depends(get_storage),
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Server, storage, email and reminder-schedule state in one payload."""
    return {
        "server": {
            "status": "running",
            "app": settings.app_name,
            "environment": settings.environment,
            "timestamp": utc_now_iso(),
        },
        "storage": {
            "mode": storage.mode,
            "database": _database_state(storage),
        },
        "email": {
            "enabled": dispatcher.enabled,
            "configured": dispatcher.configured,
            "mode": dispatcher.mode,
        },
        "reminders": {
            "windowDays": settings.reminder_days,
            "schedule": f"{settings.reminder_hour:02d}:{settings.reminder_minute:02d}",
            "schedulerEnabled": settings.scheduler_enabled,
        },
    }
