from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

logger = logging.getLogger("insuretrack.services.scheduler")


def next_run_after(now: datetime, hour: int, minute: int) -> datetime:
    """Next occurrence of hour:minute strictly after `now`."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class ReminderScheduler:
    """
    Runs a job once a day at a fixed local time on a daemon thread.

    Errors raised by the job are logged and the next day's run still
    happens. `stop()` wakes the thread immediately.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        hour: int = 8,
        minute: int = 0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.job = job
        self.hour = hour
        self.minute = minute
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="reminder-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("Daily reminders scheduled for %02d:%02d", self.hour, self.minute)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Reminder scheduler stopped")

    def run_once(self) -> None:
        logger.info("Running scheduled reminder check...")
        try:
            self.job()
        except Exception:  # noqa: BLE001 - the scheduler must outlive a failing run
            logger.exception("Error in scheduled reminder check")

    def _loop(self) -> None:
        while not self._stop.is_set():
            now = self._clock()
            due = next_run_after(now, self.hour, self.minute)
            wait_seconds = (due - now).total_seconds()
            logger.debug("Next reminder check at %s", due.isoformat())

            if self._stop.wait(wait_seconds):
                break
            self.run_once()
