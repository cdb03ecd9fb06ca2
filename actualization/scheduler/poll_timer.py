"""
actualization/scheduler/poll_timer.py

APScheduler-backed recurring timer used to poll job status.

Lifecycle
----------
Call ``build_scheduler()`` once to get an ``AsyncIOScheduler``. Start it
on app boot and shut it down on app shutdown (see the ``lifespan`` in
main.py). Each session owns one ``SchedulerPollTimer``; its interval job
is removed when the session reaches a terminal state or is closed.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Protocol

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class PollTimer(Protocol):
    @property
    def is_running(self) -> bool:
        ...

    def start(self, callback: TickCallback, interval_seconds: float) -> None:
        ...

    def stop(self) -> None:
        ...


class SchedulerPollTimer:
    """
    One cancellable interval job on a shared scheduler.

    ``max_instances=1`` keeps at most one tick in flight; late ticks are
    coalesced rather than queued.
    """

    def __init__(self, *, scheduler: AsyncIOScheduler, job_id: str) -> None:
        self._scheduler = scheduler
        self._job_id = job_id
        self._job: Job | None = None

    @property
    def is_running(self) -> bool:
        return self._job is not None

    def start(self, callback: TickCallback, interval_seconds: float) -> None:
        self.stop()
        self._job = self._scheduler.add_job(
            callback,
            trigger="interval",
            seconds=interval_seconds,
            id=self._job_id,
            name=f"Actualization status poll {self._job_id}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Poll timer started job_id=%s interval_seconds=%.2f", self._job_id, interval_seconds)

    def stop(self) -> None:
        if self._job is None:
            return
        try:
            self._job.remove()
        except JobLookupError:
            pass
        self._job = None
        logger.info("Poll timer stopped job_id=%s", self._job_id)


def build_scheduler() -> AsyncIOScheduler:
    """
    Return a configured but *not yet started* ``AsyncIOScheduler``.
    """

    return AsyncIOScheduler(timezone="UTC")
