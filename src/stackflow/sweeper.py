"""Periodic closing of sign-in prompts whose window elapsed."""

from __future__ import annotations

from contextlib import suppress
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

if TYPE_CHECKING:
    from stackflow.app import StackflowApp

SWEEP_JOB_ID = "stackflow.signin_sweep"


class SignInSweeper:
    """Schedules ``StackflowApp.sweep_expired`` on the running event loop."""

    def __init__(self, app: StackflowApp, *, interval_seconds: int, scheduler: AsyncIOScheduler | None = None) -> None:
        self.app = app
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler or AsyncIOScheduler()

    def start(self) -> None:
        self.scheduler.add_job(
            self._run,
            IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info("signin.sweeper_started interval={}s", self.interval_seconds)

    def shutdown(self) -> None:
        if self.scheduler.running:
            with suppress(Exception):
                self.scheduler.shutdown(wait=False)

    async def _run(self) -> None:
        try:
            await self.app.sweep_expired()
        except Exception:
            logger.exception("signin.sweep_failed")
