from pathlib import Path

import pytest
from pydantic import ValidationError

from insuretrack.config import Settings
from insuretrack.email.config import email_settings_from


def test_env_aliases(monkeypatch):
    monkeypatch.setenv("REMINDER_DAYS", "14")
    monkeypatch.setenv("ENABLE_EMAIL", "false")
    monkeypatch.setenv("DATA_DIR", "/tmp/insuretrack-data")
    monkeypatch.setenv("MONGODB_URI", "")

    settings = Settings()

    assert settings.reminder_days == 14
    assert settings.email_enabled is False
    assert settings.data_dir == Path("/tmp/insuretrack-data")
    assert settings.mongodb_uri is None


@pytest.mark.parametrize(
    "field,value",
    [("reminder_days", 0), ("reminder_hour", 24), ("reminder_minute", 60)],
)
def test_out_of_range_reminder_settings(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


def test_cors_origins_parsing():
    assert Settings(cors_origins_raw="https://a.example, https://b.example,").cors_origins == [
        "https://a.example",
        "https://b.example",
    ]


def test_email_settings_derived_from_settings():
    email = email_settings_from(
        Settings(
            email_smtp_username="user@example.com",
            email_smtp_password="pw",
            email_from_address="noreply@example.com",
        )
    )
    assert email.has_smtp_credentials is True
    assert email.sender == "noreply@example.com"
