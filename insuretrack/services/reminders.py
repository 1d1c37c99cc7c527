"""
Reminder sweep: find entries inside the reminder window and email them.

Selection policy is the *window* policy: every entry classified as
`expiring` (expiry within `window_days` of `as_of`) gets a reminder on each
sweep; already-expired entries are never re-reminded. Sends are sequential.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from insuretrack.email.service import STATUS_FAILED, DispatchResult, EmailDispatcher
from insuretrack.errors import StorageUnavailableError
from insuretrack.services.expiry import (
    DEFAULT_WINDOW_DAYS,
    ExpiryStatus,
    classify,
    utc_now,
)
from insuretrack.services.templates import DEFAULT_TEMPLATE, ReminderTemplate, render
from insuretrack.storage.base import StorageAdapter

logger = logging.getLogger("insuretrack.services.reminders")


@dataclass
class ReminderOutcome:
    entry_id: Optional[str]
    name: Optional[str]
    email: str
    result: DispatchResult
    logged: bool

    @property
    def success(self) -> bool:
        return self.result.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "name": self.name,
            "email": self.email,
            "success": self.success,
            "status": self.result.status,
            "messageId": self.result.message_id,
            "error": self.result.error,
            "logged": self.logged,
        }


@dataclass
class SweepResult:
    as_of: datetime
    window_days: int
    results: List[ReminderOutcome] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def sent(self) -> int:
        return sum(1 for outcome in self.results if outcome.success)

    @property
    def failed(self) -> int:
        return self.total - self.sent

    @property
    def message(self) -> str:
        if not self.results:
            return "No policies expiring soon"
        return f"Reminder emails sent: {self.sent} successful, {self.failed} failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "asOf": self.as_of.isoformat(),
            "windowDays": self.window_days,
            "sent": self.sent,
            "failed": self.failed,
            "total": self.total,
            "skipped": self.skipped,
            "results": [outcome.to_dict() for outcome in self.results],
        }


def record_dispatch(storage: StorageAdapter, result: DispatchResult) -> bool:
    """
    Persist the log entry for one send attempt.

    Returns False when the log could not be written; the send itself has
    already happened and is not undone.
    """
    try:
        storage.add_log(result.to_log_entry())
    except StorageUnavailableError:
        logger.error("Could not record email log for %s", result.recipient, exc_info=True)
        return False
    return True


def send_entry_reminder(
    entry: Mapping[str, Any],
    storage: StorageAdapter,
    dispatcher: EmailDispatcher,
    template: ReminderTemplate = DEFAULT_TEMPLATE,
    now: Optional[datetime] = None,
) -> ReminderOutcome:
    """Render, dispatch and log a reminder for a single entry."""
    message = render(template, entry, now=now)
    result = dispatcher.send(
        str(entry.get("email", "")),
        message.subject,
        message.text_body,
        message.html_body,
    )
    logged = record_dispatch(storage, result)

    return ReminderOutcome(
        entry_id=entry.get("id"),
        name=entry.get("name"),
        email=result.recipient,
        result=result,
        logged=logged,
    )


def select_expiring(
    entries: List[Mapping[str, Any]],
    as_of: datetime,
    window_days: int,
) -> tuple[List[Mapping[str, Any]], int]:
    """Entries classified `expiring`, plus how many had unusable expiry dates."""
    selected = []
    skipped = 0
    for entry in entries:
        try:
            status = classify(entry.get("expiryDate"), as_of, window_days)
        except (TypeError, ValueError):
            logger.warning(
                "Skipping entry %s: unparsable expiry date %r",
                entry.get("id"),
                entry.get("expiryDate"),
            )
            skipped += 1
            continue
        if status is ExpiryStatus.EXPIRING:
            selected.append(entry)
    return selected, skipped


def run_reminder_sweep(
    storage: StorageAdapter,
    dispatcher: EmailDispatcher,
    as_of: Optional[datetime] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    template: ReminderTemplate = DEFAULT_TEMPLATE,
) -> SweepResult:
    """
    Send reminders for every entry expiring within the window.

    A failing entry never aborts the sweep; every outcome is reported.
    """
    as_of = as_of or utc_now()
    entries = storage.list_entries()
    selected, skipped = select_expiring(entries, as_of, window_days)

    logger.info(
        "Reminder sweep started (as_of=%s, window=%sd): %d of %d entries expiring",
        as_of.isoformat(),
        window_days,
        len(selected),
        len(entries),
    )

    sweep = SweepResult(as_of=as_of, window_days=window_days, skipped=skipped)
    for entry in selected:
        try:
            outcome = send_entry_reminder(entry, storage, dispatcher, template, now=as_of)
        except Exception as exc:  # noqa: BLE001 - one bad entry must not stop the sweep
            logger.exception("Error sending reminder to %s", entry.get("email"))
            failure = DispatchResult(
                recipient=str(entry.get("email", "")),
                subject="",
                status=STATUS_FAILED,
                message="Failed to send email",
                error=str(exc),
            )
            outcome = ReminderOutcome(
                entry_id=entry.get("id"),
                name=entry.get("name"),
                email=failure.recipient,
                result=failure,
                logged=record_dispatch(storage, failure),
            )
        sweep.results.append(outcome)

    logger.info(
        "Reminder sweep finished: %d sent, %d failed, %d total, %d skipped",
        sweep.sent,
        sweep.failed,
        sweep.total,
        sweep.skipped,
    )
    return sweep
