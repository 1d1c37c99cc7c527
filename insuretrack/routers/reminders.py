from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from insuretrack.config import Settings
from insuretrack.deps import get_app_settings, get_dispatcher, get_storage
from insuretrack.email.service import EmailDispatcher, SmtpTransport
from insuretrack.errors import EntryValidationError, FieldError
from insuretrack.schemas.entry import EMAIL_PATTERN, validate_reminder_target
from insuretrack.services.expiry import parse_expiry_date
from insuretrack.services.reminders import (
    record_dispatch,
    run_reminder_sweep,
    send_entry_reminder,
)
from insuretrack.services.templates import ReminderTemplate, template_from_settings
from insuretrack.storage.base import StorageAdapter

logger = logging.getLogger("insuretrack.routers.reminders")

router = APIRouter(tags=["reminders"])

TEST_EMAIL_SUBJECT = "InsureTrack - Test Email"
TEST_EMAIL_BODY = """This is a test email from the InsureTrack system.

If you received this email, the email configuration is working correctly.

Best regards,
InsureTrack System"""


def _request_template(payload: Dict[str, Any], settings: Settings) -> ReminderTemplate:
    """Configured template, with optional per-request subject/body overrides."""
    base = template_from_settings(settings)
    subject = payload.pop("subject", None)
    body = payload.pop("body", None) or payload.pop("message", None)
    return ReminderTemplate(
        subject=subject if isinstance(subject, str) and subject.strip() else base.subject,
        body=body if isinstance(body, str) and body.strip() else base.body,
    )


@router.post("/send-single-reminder", summary="Send one reminder email")
def send_single_reminder(
    payload: Dict[str, Any] = Body(...),
    storage: StorageAdapter = Depends(get_storage),
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Render and dispatch a reminder for an ad-hoc recipient.

    Transport failures come back as `success: false`; they are not HTTP
    errors. The attempt is logged either way.
    """
    payload = dict(payload)
    template = _request_template(payload, settings)
    entry = validate_reminder_target(payload)

    outcome = send_entry_reminder(entry, storage, dispatcher, template)
    return {**outcome.result.to_dict(), "logged": outcome.logged}


@router.post("/send-reminders", summary="Run the reminder sweep now")
def send_reminders(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    storage: StorageAdapter = Depends(get_storage),
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Optional body: `{"asOf": "<ISO date>", "windowDays": <int>}`.
    Defaults are now and REMINDER_DAYS.
    """
    payload = payload or {}
    errors = []

    as_of = None
    if payload.get("asOf"):
        try:
            as_of = parse_expiry_date(payload["asOf"])
        except ValueError:
            errors.append(FieldError(field="asOf", message="asOf must be an ISO-8601 date"))

    window_days = payload.get("windowDays", settings.reminder_days)
    if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days <= 0:
        errors.append(
            FieldError(field="windowDays", message="windowDays must be a positive integer")
        )

    if errors:
        raise EntryValidationError(errors, message="Invalid reminder request")

    sweep = run_reminder_sweep(
        storage,
        dispatcher,
        as_of=as_of,
        window_days=window_days,
        template=template_from_settings(settings),
    )
    return sweep.to_dict()


@router.post("/send-test-email", summary="Send a test email")
def send_test_email(
    payload: Dict[str, Any] = Body(...),
    storage: StorageAdapter = Depends(get_storage),
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    to_email = str(payload.get("email") or "").strip()
    if not EMAIL_PATTERN.match(to_email):
        raise EntryValidationError(
            [FieldError(field="email", message="Valid email is required")]
        )

    result = dispatcher.send(to_email, TEST_EMAIL_SUBJECT, TEST_EMAIL_BODY)
    logged = record_dispatch(storage, result)
    return {**result.to_dict(), "logged": logged}


def _masked(secret: Optional[str]) -> Optional[str]:
    return "********" if secret else None


@router.get("/email-config", summary="Current email settings, password masked")
def get_email_config(
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Reflects runtime changes made through /update-email-config."""
    transport = dispatcher.transport
    if isinstance(transport, SmtpTransport):
        smtp = {
            "host": transport.host,
            "port": transport.port,
            "secure": transport.secure,
            "user": transport.username,
            "password": _masked(transport.password),
            "from": transport.from_address,
        }
    else:
        smtp = {
            "host": settings.email_smtp_host,
            "port": settings.email_smtp_port,
            "secure": settings.email_smtp_secure,
            "user": settings.email_smtp_username,
            "password": _masked(settings.email_smtp_password),
            "from": str(settings.email_from_address or settings.email_smtp_username or "") or None,
        }

    return {
        "enabled": dispatcher.enabled,
        "configured": dispatcher.configured,
        "mode": dispatcher.mode,
        **smtp,
    }


@router.post("/update-email-config", summary="Replace the SMTP settings for this process")
def update_email_config(
    payload: Dict[str, Any] = Body(...),
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Point the dispatcher at a new SMTP server until the process restarts.
    Nothing is written to .env or the environment.
    """
    errors = []
    user = str(payload.get("user") or "").strip()
    password = str(payload.get("password") or "")
    host = str(payload.get("host") or settings.email_smtp_host).strip()

    if not user:
        errors.append(FieldError(field="user", message="SMTP user is required"))
    if not password:
        errors.append(FieldError(field="password", message="SMTP password is required"))

    try:
        port = int(payload.get("port") or settings.email_smtp_port)
    except (TypeError, ValueError):
        errors.append(FieldError(field="port", message="port must be a number"))
        port = 0

    if errors:
        raise EntryValidationError(errors, message="Invalid email configuration")

    dispatcher.reconfigure(
        SmtpTransport(
            host=host,
            port=port,
            username=user,
            password=password,
            from_address=str(settings.email_from_address or user),
            from_name=settings.email_from_name,
            secure=bool(payload.get("secure", settings.email_smtp_secure)),
            timeout=settings.email_smtp_timeout,
        )
    )
    logger.info("Email configuration updated (host=%s, port=%s, user=%s)", host, port, user)

    return {
        "success": True,
        "message": "Email configuration updated successfully",
        "mode": dispatcher.mode,
    }
