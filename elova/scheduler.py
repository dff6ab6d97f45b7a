"""Periodic sync scheduling with overlap suppression."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .config import settings

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class SyncScheduler:
    """Runs ``sync_fn`` every ``interval_minutes``; a tick that finds a run in flight is dropped."""

    def __init__(
        self,
        name: str,
        sync_fn: Callable[[], Awaitable[Any]],
        interval_minutes: float,
    ) -> None:
        self.name = name
        self.interval_minutes = interval_minutes
        self.state = SchedulerState.IDLE
        self.last_run_at: Optional[datetime] = None
        self.next_run_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.last_result: Any = None
        self.runs_skipped = 0
        self._sync_fn = sync_fn
        self._timer: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def is_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self, interval_minutes: float | None = None) -> bool:
        """Arm the timer and fire the first run immediately."""
        if self.is_armed:
            logger.warning("%s scheduler is already running", self.name)
            return False
        if interval_minutes:
            self.interval_minutes = interval_minutes
        self._stop_event = asyncio.Event()
        self._timer = asyncio.create_task(self._run_loop(), name=f"{self.name}-sync-scheduler")
        logger.info("%s scheduler started, every %s minutes", self.name, self.interval_minutes)
        return True

    async def stop(self) -> None:
        """Disarm the timer. A run already in flight is left to finish."""
        if self._timer is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        self._timer.cancel()
        try:
            await self._timer
        except asyncio.CancelledError:
            pass
        finally:
            self._timer = None
            self.next_run_at = None
        logger.info("%s scheduler stopped", self.name)

    async def wait_idle(self) -> None:
        """Wait for in-flight runs started by the timer."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def run_once(self) -> Any:
        """Run now unless a run is already in flight; returns the sync result or None."""
        if self.state is SchedulerState.RUNNING:
            self._note_skip()
            return None
        self.state = SchedulerState.RUNNING
        return await self._execute()

    async def force_sync(self) -> Any:
        """Clear a stuck running state and run immediately."""
        if self.state is SchedulerState.RUNNING:
            logger.warning("%s scheduler forced while marked running, resetting", self.name)
        self.state = SchedulerState.IDLE
        return await self.run_once()

    def status(self) -> dict:
        return {
            "name": self.name,
            "armed": self.is_armed,
            "state": self.state.value,
            "interval_minutes": self.interval_minutes,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "last_error": self.last_error,
            "runs_skipped": self.runs_skipped,
        }

    def _note_skip(self) -> None:
        self.runs_skipped += 1
        logger.info("%s sync still running, skipping this run", self.name)

    def _tick(self) -> None:
        if self.state is SchedulerState.RUNNING:
            self._note_skip()
            return
        self.state = SchedulerState.RUNNING
        task = asyncio.create_task(self._execute(), name=f"{self.name}-sync-run")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _execute(self) -> Any:
        self.last_run_at = datetime.now(timezone.utc)
        try:
            result = await self._sync_fn()
        except Exception as exc:
            logger.exception("%s sync run failed", self.name)
            self.last_error = str(exc) or exc.__class__.__name__
            return None
        finally:
            self.state = SchedulerState.IDLE
        self.last_error = None
        self.last_result = result
        return result

    async def _run_loop(self) -> None:
        if self._stop_event is None:
            return
        interval = self.interval_minutes * 60
        while not self._stop_event.is_set():
            self._tick()
            self.next_run_at = datetime.now(timezone.utc) + timedelta(seconds=interval)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue


def _sync_all_job(sync_type: str) -> Callable[[], Awaitable[Any]]:
    async def job():
        from .sync.sync_engine import sync_all_providers

        return await sync_all_providers(sync_type)

    return job


def build_schedulers() -> dict[str, SyncScheduler]:
    return {
        "executions": SyncScheduler(
            "executions", _sync_all_job("executions"), settings.execution_sync_interval_minutes
        ),
        "workflows": SyncScheduler(
            "workflows", _sync_all_job("workflows"), settings.sync_interval_minutes
        ),
        "backups": SyncScheduler(
            "backups", _sync_all_job("backups"), settings.backup_sync_interval_minutes
        ),
    }


schedulers = build_schedulers()


def start_schedulers() -> None:
    for scheduler in schedulers.values():
        scheduler.start()


async def stop_schedulers() -> None:
    for scheduler in schedulers.values():
        await scheduler.stop()
