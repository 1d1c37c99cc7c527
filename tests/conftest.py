from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from insuretrack.config import Settings
from insuretrack.email.service import EmailDispatcher, EmailTransport
from insuretrack.errors import DispatchError
from insuretrack.main import create_app
from insuretrack.storage import FileStorage

AS_OF = datetime(2025, 1, 5, tzinfo=timezone.utc)


class RecordingTransport(EmailTransport):
    """Accepts every message and keeps it for inspection."""

    name = "recording"

    def __init__(self, fail_for: Tuple[str, ...] = ()) -> None:
        self.sent: List[dict] = []
        self.fail_for = fail_for

    def send(self, to_email: str, subject: str, text_body: str, html_body: Optional[str] = None):
        if to_email in self.fail_for:
            raise DispatchError("Connection refused")
        self.sent.append(
            {"to": to_email, "subject": subject, "text": text_body, "html": html_body}
        )
        return f"<{len(self.sent)}@test.local>", "250 OK"


@pytest.fixture
def asha() -> dict:
    return {
        "name": "Asha",
        "email": "asha@example.com",
        "policyNumber": "MH12AB1234",
        "policyType": "Car",
        "phone": "9876543210",
        "expiryDate": "2025-01-10",
    }


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        mongodb_uri=None,
        scheduler_enabled=False,
        email_enabled=True,
        reminder_days=7,
        api_prefix="",
    )


@pytest.fixture
def storage(tmp_path) -> FileStorage:
    return FileStorage(tmp_path / "data")


@pytest.fixture
def dispatcher() -> EmailDispatcher:
    return EmailDispatcher()


@pytest.fixture
def client(settings, storage, dispatcher):
    app = create_app(settings=settings, storage=storage, dispatcher=dispatcher)
    with TestClient(app) as test_client:
        yield test_client
