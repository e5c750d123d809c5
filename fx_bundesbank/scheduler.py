"""Background scheduling for rate synchronisation and registry refreshes."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, time
from typing import Callable

from fx_bundesbank.utils.calendar import next_daily_run, next_weekday_run
from fx_bundesbank.utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class ScheduledJob:
    """A named action plus the rule that computes its next run time."""

    name: str
    action: Callable[[], object]
    next_after: Callable[[datetime], datetime]
    next_run: datetime | None = None

    def schedule_from(self, now: datetime) -> datetime:
        self.next_run = self.next_after(now)
        return self.next_run


def daily_at(at: time) -> Callable[[datetime], datetime]:
    return lambda now: next_daily_run(now, at)


def weekdays_at(at: time) -> Callable[[datetime], datetime]:
    return lambda now: next_weekday_run(now, at)


class SyncScheduler:
    """Runs registered jobs on a single daemon thread.

    Jobs execute sequentially, so a slow sync delays the registry refresh
    rather than overlapping with it. A failing job is logged and rescheduled.
    """

    def __init__(self, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._jobs: list[ScheduledJob] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add_job(
        self, name: str, action: Callable[[], object], next_after: Callable[[datetime], datetime]
    ) -> ScheduledJob:
        job = ScheduledJob(name=name, action=action, next_after=next_after)
        job.schedule_from(self._clock())
        with self._lock:
            self._jobs.append(job)
        LOGGER.info("Scheduled job %s; next run at %s", name, job.next_run)
        return job

    def run_pending(self, now: datetime | None = None) -> list[str]:
        """Run every job due at ``now`` and reschedule it; return the names that ran."""

        current = now or self._clock()
        with self._lock:
            due = [job for job in self._jobs if job.next_run is not None and job.next_run <= current]
        ran: list[str] = []
        for job in due:
            LOGGER.info("Running scheduled job %s", job.name)
            try:
                job.action()
            except Exception:  # keep the scheduler thread alive for the next run
                LOGGER.exception("Scheduled job %s failed", job.name)
            ran.append(job.name)
            job.schedule_from(current)
            LOGGER.info("Next run of %s at %s", job.name, job.next_run)
        return ran

    def seconds_until_next(self, now: datetime | None = None) -> float | None:
        current = now or self._clock()
        with self._lock:
            upcoming = [job.next_run for job in self._jobs if job.next_run is not None]
        if not upcoming:
            return None
        return max(0.0, (min(upcoming) - current).total_seconds())

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="fx-scheduler", daemon=True)
        self._thread.start()
        LOGGER.info("Scheduler started with %s job(s)", len(self._jobs))

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        LOGGER.info("Scheduler stopped")

    def run_forever(self) -> None:
        """Block the calling thread running jobs until :meth:`stop` is called."""

        self._loop()

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_pending()
            wait_for = self.seconds_until_next()
            # Wake up at least once a minute so clock adjustments are picked up.
            self._stop.wait(60.0 if wait_for is None else min(wait_for, 60.0))


__all__ = ["ScheduledJob", "SyncScheduler", "daily_at", "weekdays_at"]
