from datetime import datetime

from insuretrack.services.scheduler import ReminderScheduler, next_run_after


def test_next_run_later_today():
    assert next_run_after(datetime(2025, 1, 5, 6, 30), 8, 0) == datetime(2025, 1, 5, 8, 0)


def test_next_run_tomorrow_once_time_has_passed():
    assert next_run_after(datetime(2025, 1, 5, 9, 0), 8, 0) == datetime(2025, 1, 6, 8, 0)


def test_next_run_at_exact_time_is_tomorrow():
    assert next_run_after(datetime(2025, 1, 5, 8, 0), 8, 0) == datetime(2025, 1, 6, 8, 0)


def test_run_once_survives_job_errors():
    calls = []

    def job():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler = ReminderScheduler(job)
    scheduler.run_once()
    scheduler.run_once()

    assert len(calls) == 2


def test_start_and_stop():
    scheduler = ReminderScheduler(
        lambda: None,
        hour=8,
        minute=0,
        clock=lambda: datetime(2025, 1, 5, 9, 0),
    )

    scheduler.start()
    assert scheduler.running is True

    scheduler.stop(timeout=2)
    assert scheduler.running is False
