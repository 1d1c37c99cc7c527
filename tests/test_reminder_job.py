import pytest

from insuretrack import reminder_job
from insuretrack.config import Settings
from insuretrack.storage import FileStorage


@pytest.fixture
def job_settings(tmp_path, monkeypatch):
    settings = Settings(data_dir=tmp_path / "data", mongodb_uri=None, reminder_days=7)
    monkeypatch.setattr(reminder_job, "get_settings", lambda: settings)
    monkeypatch.setattr(reminder_job, "configure_logging", lambda: None)
    return settings


def test_dry_run_logs_simulated_reminders(job_settings, asha):
    storage = FileStorage(job_settings.data_dir)
    storage.add_entry(asha)

    exit_code = reminder_job.main(["--as-of", "2025-01-05", "--window", "7", "--dry-run"])

    assert exit_code == 0
    logs = storage.list_logs()
    assert len(logs) == 1
    assert logs[0]["status"] == "simulated"
    assert logs[0]["message"] == "Email sending is disabled - email was simulated"


def test_run_reminder_job_uses_configured_window(job_settings, asha):
    FileStorage(job_settings.data_dir).add_entry({**asha, "expiryDate": "2025-01-20"})

    sweep = reminder_job.run_reminder_job(
        as_of=reminder_job._as_of("2025-01-05"), dry_run=True
    )

    assert sweep.window_days == 7
    assert sweep.total == 0


def test_invalid_window_is_rejected():
    with pytest.raises(SystemExit):
        reminder_job.build_parser().parse_args(["--window", "0"])
