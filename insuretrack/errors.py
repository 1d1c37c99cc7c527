"""Exception taxonomy shared by storage, validation, email and the routers."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class FieldError(BaseModel):
    """One rejected field. `row` is set for bulk input (1-based)."""

    field: str
    message: str
    row: Optional[int] = None

    def __str__(self) -> str:
        if self.row is not None:
            return f"Row {self.row}: {self.message}"
        return self.message


class InsureTrackError(Exception):
    """Base exception for InsureTrack failures."""


class EntryValidationError(InsureTrackError):
    """Raised when client-supplied entry data is malformed."""

    def __init__(self, errors: List[FieldError], message: str = "Validation failed") -> None:
        self.errors = list(errors)
        self.message = message
        detail = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{message}: {detail}" if detail else message)


class NotFoundError(InsureTrackError):
    """Raised when an entry or log id does not resolve."""

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found")


class StorageUnavailableError(InsureTrackError):
    """Raised when a write cannot be persisted by the active backend."""


class DispatchError(InsureTrackError):
    """
    Raised by email transports on send failure.

    The dispatcher converts it into a failed result; it never reaches
    API callers.
    """
