from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Response, status
from fastapi.responses import JSONResponse

from insuretrack.config import Settings
from insuretrack.deps import get_app_settings, get_storage
from insuretrack.errors import FieldError
from insuretrack.schemas.entry import validate_entry, validate_partial, validate_rows
from insuretrack.services.expiry import summarize
from insuretrack.storage.base import StorageAdapter

logger = logging.getLogger("insuretrack.routers.insurance")

router = APIRouter(prefix="/insurance", tags=["insurance"])


@router.get("", summary="List insurance entries")
def list_insurance(storage: StorageAdapter = Depends(get_storage)) -> List[Dict[str, Any]]:
    return storage.list_entries()


@router.get("/summary", summary="Count entries by expiry status")
def insurance_summary(
    storage: StorageAdapter = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Active / expiring / expired counts using the configured reminder window.
    """
    counts = summarize(storage.list_entries(), window_days=settings.reminder_days)
    counts["windowDays"] = settings.reminder_days
    return counts


@router.get("/{entry_id}", summary="Get one insurance entry")
def get_insurance(
    entry_id: str,
    storage: StorageAdapter = Depends(get_storage),
) -> Dict[str, Any]:
    return storage.get_entry(entry_id)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Add an insurance entry",
)
def create_insurance(
    payload: Dict[str, Any] = Body(...),
    storage: StorageAdapter = Depends(get_storage),
) -> Dict[str, Any]:
    """
    Validate and persist a new entry. `id`, `createdAt` and `updatedAt`
    are assigned here; client-supplied values for them are ignored.
    """
    values = validate_entry(payload)
    entry = storage.add_entry(values)
    logger.info("Created insurance entry %s for %s", entry["id"], entry.get("email"))
    return entry


@router.put("/{entry_id}", summary="Partially update an insurance entry")
def update_insurance(
    entry_id: str,
    payload: Dict[str, Any] = Body(...),
    storage: StorageAdapter = Depends(get_storage),
) -> Dict[str, Any]:
    """Only the supplied fields change; updatedAt is always refreshed."""
    changes = validate_partial(payload)
    return storage.update_entry(entry_id, changes)


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an insurance entry",
)
def delete_insurance(
    entry_id: str,
    storage: StorageAdapter = Depends(get_storage),
) -> Response:
    storage.delete_entry(entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _rejected(error: str, total: int, errors: List[FieldError]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": error,
            "status": "rejected",
            "total": total,
            "insertedCount": 0,
            "inserted": [],
            "errors": [e.model_dump(exclude_none=True) for e in errors],
        },
    )


@router.post(
    "/bulk",
    status_code=status.HTTP_201_CREATED,
    summary="Bulk add insurance entries",
    description=(
        "Each row is validated independently. Valid rows are committed even "
        "when other rows fail; failures are reported with their 1-based row number."
    ),
)
def bulk_create_insurance(
    payload: Dict[str, Any] = Body(...),
    storage: StorageAdapter = Depends(get_storage),
) -> Any:
    rows = payload.get("data")
    if not isinstance(rows, list) or not rows:
        return _rejected(
            "No data provided",
            0,
            [FieldError(field="data", message="data must be a non-empty array of entries")],
        )

    validation = validate_rows(rows)
    errors = [error.model_dump(exclude_none=True) for error in validation.errors]

    if validation.outcome == "rejected":
        logger.warning("Bulk import rejected: %d rows, all invalid", validation.total)
        return _rejected(
            "Validation errors found in uploaded data", validation.total, validation.errors
        )

    inserted = storage.bulk_add_entries(validation.valid)

    logger.info(
        "Bulk import %s: %d of %d rows inserted, %d rejected",
        validation.outcome,
        len(inserted),
        validation.total,
        validation.rejected_rows,
    )

    return {
        "status": validation.outcome,
        "total": validation.total,
        "insertedCount": len(inserted),
        "inserted": inserted,
        "errors": errors,
    }
