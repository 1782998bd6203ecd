"""Periodic check trigger built on APScheduler."""

from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from webpage_monitor.core import Scheduler

logger = structlog.get_logger(__name__)

CheckHandler = Callable[[str], Awaitable[Any]]

TARGET_JOB_PREFIX = "monitor_"
RELOAD_JOB_ID = "reload_targets"


class AsyncioScheduler(Scheduler):
    """One interval job per target on an APScheduler ``AsyncIOScheduler``.

    The first check fires after ``initial_delay``; later ones every interval,
    jittered by up to ``jitter`` (a fraction of the interval) so many targets
    do not hit their sites in lockstep. ``start`` must be called from inside a
    running event loop.
    """

    def __init__(
        self,
        handler: Optional[CheckHandler] = None,
        jitter: float = 0.1,
        initial_delay: float = 1.0,
    ) -> None:
        self.handler = handler
        self.jitter = jitter
        self.initial_delay = initial_delay
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self.logger = logger.bind(component="scheduler")

        self._intervals: dict[str, int] = {}
        self._setup_listeners()

    def _setup_listeners(self) -> None:
        def job_error_listener(event):
            # Checks report their own failures; the job stays scheduled
            self.logger.error(
                "scheduled_job_failed",
                job_id=event.job_id,
                error=str(event.exception),
            )

        def job_skipped_listener(event):
            self.logger.debug("scheduled_job_still_running", job_id=event.job_id)

        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
        self.scheduler.add_listener(job_skipped_listener, EVENT_JOB_MAX_INSTANCES)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    @property
    def scheduled_ids(self) -> list[str]:
        return list(self._intervals)

    def scheduled_intervals(self) -> dict[str, int]:
        return dict(self._intervals)

    def _first_run(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=self.initial_delay)

    def schedule(self, target_id: str, interval_seconds: int) -> None:
        if self.handler is None:
            raise RuntimeError("Scheduler has no check handler")

        self.scheduler.add_job(
            func=self.handler,
            trigger=IntervalTrigger(
                seconds=interval_seconds,
                jitter=interval_seconds * self.jitter or None,
                timezone=timezone.utc,
            ),
            args=[target_id],
            id=f"{TARGET_JOB_PREFIX}{target_id}",
            name=f"Check {target_id}",
            next_run_time=self._first_run(),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._intervals[target_id] = interval_seconds
        self.logger.debug("target_scheduled", target_id=target_id, interval=interval_seconds)

    def cancel(self, target_id: str) -> None:
        if self._intervals.pop(target_id, None) is None:
            return

        try:
            self.scheduler.remove_job(f"{TARGET_JOB_PREFIX}{target_id}")
        except JobLookupError:
            # Already gone, e.g. after a scheduler shutdown
            pass

    def cancel_all(self) -> None:
        for target_id in list(self._intervals):
            self.cancel(target_id)

    def schedule_reload(self, callback: Callable[[], Awaitable[Any]], interval_seconds: float) -> None:
        """Run ``callback`` every ``interval_seconds`` to pick up target edits."""
        self.scheduler.add_job(
            func=callback,
            trigger=IntervalTrigger(seconds=interval_seconds, timezone=timezone.utc),
            id=RELOAD_JOB_ID,
            name="Reload targets",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
