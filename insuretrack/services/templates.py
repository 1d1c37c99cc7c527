from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

from insuretrack.services.expiry import days_until_expiry, parse_expiry_date, utc_now

logger = logging.getLogger("insuretrack.services.templates")

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "email" / "templates"
HTML_SHELL = "reminder.html"

DEFAULT_TEAM_NAME = "InsureTrack Team"
MISSING_VALUE = "N/A"
MISSING_NAME = "Customer"

PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")
BOLD_RE = re.compile(r"\*\*(.+?)\*\*")


@dataclass(frozen=True)
class ReminderTemplate:
    subject: str
    body: str


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    text_body: str
    html_body: str


DEFAULT_TEMPLATE = ReminderTemplate(
    subject="Insurance Expiry Reminder - {policyNumber}",
    body="""Hi {name},

Your **{policyType}** insurance for **{policyNumber}** is expiring on **{expiryDate}** ({daysUntilExpiry} days remaining). Please renew it before the due date to avoid penalties.

**Policy Details:**
- Policy Number: {policyNumber}
- Policy Type: {policyType}
- Owner: {name}
- Mobile: {phone}

**Important:** Don't let your insurance lapse. Renew today to stay protected!

Thanks,
InsureTrack Team""",
)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _first(entry: Mapping[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = _text(entry.get(name))
        if value:
            return value
    return None


def format_expiry_date(value: Any) -> Optional[str]:
    """`2025-01-10` -> `January 10, 2025`; unparsable values pass through."""
    if value is None or value == "":
        return None
    try:
        expiry = parse_expiry_date(value)
    except ValueError:
        return _text(value)
    return f"{expiry:%B} {expiry.day}, {expiry.year}"


def placeholder_values(
    entry: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Resolve every supported placeholder for one entry.

    Alias pairs (policyNumber/vehicleNo, policyType/vehicleType,
    phone/mobileNo) resolve to the same value.
    """
    now = now or utc_now()

    policy_number = _first(entry, "policyNumber", "vehicleNo") or MISSING_VALUE
    policy_type = _first(entry, "policyType", "vehicleType") or MISSING_VALUE
    phone = _first(entry, "phone", "mobileNo") or MISSING_VALUE

    try:
        days = str(days_until_expiry(entry.get("expiryDate"), now))
    except (TypeError, ValueError):
        days = MISSING_VALUE

    return {
        "name": _first(entry, "name") or MISSING_NAME,
        "email": _first(entry, "email") or MISSING_VALUE,
        "policyNumber": policy_number,
        "vehicleNo": policy_number,
        "policyType": policy_type,
        "vehicleType": policy_type,
        "phone": phone,
        "mobileNo": phone,
        "expiryDate": format_expiry_date(entry.get("expiryDate")) or MISSING_VALUE,
        "daysUntilExpiry": days,
        "premium": _first(entry, "premium") or MISSING_VALUE,
        "coverageAmount": _first(entry, "coverageAmount") or MISSING_VALUE,
    }


def substitute(text: str, values: Mapping[str, str]) -> str:
    """Replace `{token}` occurrences; unknown tokens are left verbatim."""
    return PLACEHOLDER_RE.sub(
        lambda match: values.get(match.group(1), match.group(0)),
        text,
    )


def _html_paragraphs(text: str) -> List[Markup]:
    paragraphs: List[Markup] = []
    for block in re.split(r"\n\s*\n", text.strip()):
        escaped = str(escape(block))
        escaped = BOLD_RE.sub(r"<strong>\1</strong>", escaped)
        paragraphs.append(Markup("<br>\n".join(escaped.splitlines())))
    return paragraphs


def _init_jinja() -> Optional[Environment]:
    if not TEMPLATES_DIR.exists():
        logger.error("Email templates directory does not exist: %s", TEMPLATES_DIR)
        return None

    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )


JINJA_ENV: Optional[Environment] = _init_jinja()


def _render_shell(subject: str, text_body: str, team_name: str) -> str:
    if JINJA_ENV is None:
        raise RuntimeError(
            "Jinja environment is not initialised; templates directory missing"
        )

    try:
        template = JINJA_ENV.get_template(HTML_SHELL)
    except Exception:
        logger.error("Failed to load email template %s", HTML_SHELL, exc_info=True)
        raise

    return template.render(
        subject=subject,
        heading="Insurance Expiry Reminder",
        paragraphs=_html_paragraphs(text_body),
        team_name=team_name,
    )


def render(
    template: ReminderTemplate,
    entry: Mapping[str, Any],
    now: Optional[datetime] = None,
    team_name: str = DEFAULT_TEAM_NAME,
) -> RenderedMessage:
    """
    Render subject, plain-text body and HTML body for one entry.

    Both bodies come from the same substituted text, so their values can
    never disagree.
    """
    values = placeholder_values(entry, now)
    subject = substitute(template.subject, values)
    text_body = substitute(template.body, values)
    html_body = _render_shell(subject, text_body, team_name)
    return RenderedMessage(subject=subject, text_body=text_body, html_body=html_body)


def template_from_settings(settings: Any) -> ReminderTemplate:
    """Default template with REMINDER_SUBJECT_TEMPLATE / REMINDER_BODY_TEMPLATE overrides."""
    return ReminderTemplate(
        subject=settings.reminder_subject_template or DEFAULT_TEMPLATE.subject,
        body=settings.reminder_body_template or DEFAULT_TEMPLATE.body,
    )
