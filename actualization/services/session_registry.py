"""
actualization/services/session_registry.py

One ActualizationController per user, each with its own poll timer on
the shared scheduler.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.base import BaseScheduler

from actualization.config import PollingSettings
from actualization.connectors.executor import JobExecutorService
from actualization.scheduler.poll_timer import SchedulerPollTimer
from actualization.services.lifecycle_controller import ActualizationController

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(
        self,
        *,
        executor: JobExecutorService,
        scheduler: BaseScheduler,
        polling: PollingSettings,
    ) -> None:
        self._executor = executor
        self._scheduler = scheduler
        self._polling = polling
        self._sessions: dict[str, ActualizationController] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, user_id: str) -> ActualizationController | None:
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str) -> ActualizationController:
        controller = self._sessions.get(user_id)
        if controller is not None:
            return controller

        controller = ActualizationController(
            user_id=user_id,
            executor=self._executor,
            timer=SchedulerPollTimer(scheduler=self._scheduler, job_id=f"actualization-poll-{user_id}"),
            poll_interval_seconds=self._polling.interval_seconds,
            max_notices=self._polling.max_notices,
            fetch_partial_results=self._polling.fetch_partial_results,
        )
        self._sessions[user_id] = controller
        logger.info("Actualization session opened user_id=%s sessions=%s", user_id, len(self._sessions))
        return controller

    def close(self, user_id: str) -> None:
        controller = self._sessions.pop(user_id, None)
        if controller is None:
            return
        controller.close()
        logger.info("Actualization session closed user_id=%s", user_id)

    def close_all(self) -> None:
        for user_id in list(self._sessions):
            self.close(user_id)
