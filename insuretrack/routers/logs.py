from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response, status

from insuretrack.deps import get_storage
from insuretrack.email.service import STATUS_FAILED, STATUS_SIMULATED, STATUS_SUCCESS
from insuretrack.storage.base import StorageAdapter

logger = logging.getLogger("insuretrack.routers.logs")

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", summary="List email logs, most recent first")
def list_logs(storage: StorageAdapter = Depends(get_storage)) -> List[Dict[str, Any]]:
    return storage.list_logs()


@router.get("/status", summary="Email log statistics")
def logs_status(storage: StorageAdapter = Depends(get_storage)) -> Dict[str, Any]:
    logs = storage.list_logs()
    return {
        "total": len(logs),
        "successful": sum(1 for log in logs if log.get("status") == STATUS_SUCCESS),
        "failed": sum(1 for log in logs if log.get("status") == STATUS_FAILED),
        "simulated": sum(1 for log in logs if log.get("status") == STATUS_SIMULATED),
        "recent": logs[:10],
    }


@router.delete("", summary="Clear all email logs")
def clear_logs(storage: StorageAdapter = Depends(get_storage)) -> Dict[str, Any]:
    removed = storage.clear_logs()
    return {"message": "All logs cleared successfully", "removed": removed}


@router.delete(
    "/{log_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete one email log",
)
def delete_log(log_id: str, storage: StorageAdapter = Depends(get_storage)) -> Response:
    storage.delete_log(log_id)
    logger.info("Deleted email log %s", log_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
