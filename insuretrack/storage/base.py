from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping

Entry = Dict[str, Any]
LogEntry = Dict[str, Any]


class StorageAdapter(ABC):
    """
    Uniform persistence interface for insurance entries and email logs.

    Exactly one implementation is chosen at process start; callers never
    branch on the backend.
    """

    #: "mongodb" or "file"
    mode: str = ""

    # ------------------------------------------------------------------
    # Insurance entries
    # ------------------------------------------------------------------

    @abstractmethod
    def list_entries(self) -> List[Entry]:
        """All entries; an unreadable backend yields []."""

    @abstractmethod
    def get_entry(self, entry_id: str) -> Entry:
        """Raises NotFoundError when the id does not resolve."""

    @abstractmethod
    def add_entry(self, entry: Mapping[str, Any]) -> Entry:
        """Persist a validated entry, assigning id, createdAt and updatedAt."""

    @abstractmethod
    def update_entry(self, entry_id: str, changes: Mapping[str, Any]) -> Entry:
        """Merge `changes` into the entry and refresh updatedAt."""

    @abstractmethod
    def delete_entry(self, entry_id: str) -> None:
        """Permanently remove the entry. Raises NotFoundError if absent."""

    @abstractmethod
    def bulk_add_entries(self, entries: List[Mapping[str, Any]]) -> List[Entry]:
        """Persist several validated entries in one write."""

    # ------------------------------------------------------------------
    # Email logs
    # ------------------------------------------------------------------

    @abstractmethod
    def list_logs(self) -> List[LogEntry]:
        """All logs, most recent first."""

    @abstractmethod
    def add_log(self, log: Mapping[str, Any]) -> LogEntry:
        """Append one log record, assigning an id when missing."""

    @abstractmethod
    def delete_log(self, log_id: str) -> None:
        """Raises NotFoundError if absent."""

    @abstractmethod
    def clear_logs(self) -> int:
        """Remove every log; returns how many were removed."""

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the document database is reachable right now."""

    def close(self) -> None:
        """Release backend resources. No-op by default."""
