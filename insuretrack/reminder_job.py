"""
One-shot reminder sweep for cron or manual runs.

    python -m insuretrack.reminder_job --as-of 2025-01-05 --window 7

Uses the same storage selection and email transport as the API process.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from insuretrack.config import get_settings
from insuretrack.email.config import email_settings_from
from insuretrack.email.service import EmailDispatcher, build_dispatcher
from insuretrack.logging_config import configure_logging
from insuretrack.services.expiry import parse_expiry_date
from insuretrack.services.reminders import SweepResult, run_reminder_sweep
from insuretrack.services.templates import template_from_settings
from insuretrack.storage import init_storage

logger = logging.getLogger("insuretrack.reminder_job")


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _as_of(value: str):
    try:
        return parse_expiry_date(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send reminder emails for insurance entries expiring soon."
    )
    parser.add_argument(
        "--as-of",
        type=_as_of,
        default=None,
        help="Reference date (ISO-8601). Defaults to now.",
    )
    parser.add_argument(
        "--window",
        type=_positive_int,
        default=None,
        help="Reminder window in days. Defaults to REMINDER_DAYS.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate every send; attempts are still logged as simulated.",
    )
    return parser


def run_reminder_job(
    as_of=None,
    window_days: Optional[int] = None,
    dry_run: bool = False,
) -> SweepResult:
    settings = get_settings()
    storage = init_storage(settings)

    if dry_run:
        dispatcher = EmailDispatcher(enabled=False)
    else:
        dispatcher = build_dispatcher(email_settings_from(settings))

    try:
        return run_reminder_sweep(
            storage,
            dispatcher,
            as_of=as_of,
            window_days=window_days or settings.reminder_days,
            template=template_from_settings(settings),
        )
    finally:
        storage.close()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        sweep = run_reminder_job(args.as_of, args.window, args.dry_run)
    except Exception as exc:
        logger.error("Reminder job failed: %s", exc, exc_info=True)
        return 1

    logger.info(sweep.message)
    return 1 if sweep.failed else 0


if __name__ == "__main__":
    sys.exit(main())
