# pricewatch/services/scheduler.py

"""Fixed-cadence trigger for monitoring cycles with overlap protection."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.scheduler")

RunFn = Callable[[], Awaitable[Any]]


def build_trigger(
    interval: float | str, tz: str | None = None,
) -> BaseTrigger:
    """Turn seconds or a crontab expression into an APScheduler trigger."""
    zone = tz or Settings.TIMEZONE
    if isinstance(interval, str):
        return CronTrigger.from_crontab(interval, timezone=zone)
    if interval <= 0:
        msg = f"Interval must be positive, got {interval}"
        raise ValueError(msg)
    return IntervalTrigger(seconds=interval, timezone=zone)


class CycleScheduler:
    """Invokes a coroutine function on a schedule, one run at a time.

    A tick that arrives while the previous run is still in flight is
    skipped and logged, never queued.  :meth:`stop` cancels future ticks
    but lets an in-flight run finish.

    The guard is in-process only; running several scheduler processes
    against one database would need a shared lease instead.
    """

    def __init__(self) -> None:
        self._loop_task: asyncio.Task[None] | None = None
        self._current: asyncio.Task[None] | None = None
        self.runs_started: int = 0
        self.ticks_skipped: int = 0

    @property
    def is_running(self) -> bool:
        """Whether a run is currently in flight."""
        return self._current is not None and not self._current.done()

    @property
    def is_started(self) -> bool:
        """Whether future ticks are scheduled."""
        return self._loop_task is not None and not self._loop_task.done()

    # ── Ticking ──────────────────────────────────────────

    async def _invoke(self, run_fn: RunFn) -> None:
        try:
            await run_fn()
        except Exception:
            logger.error("Scheduled run failed", exc_info=True)

    def tick(self, run_fn: RunFn) -> bool:
        """Start *run_fn* unless a previous run is still going.

        Must be called from inside the event loop.  Returns whether a
        new run was started.
        """
        if self.is_running:
            self.ticks_skipped += 1
            logger.warning(
                "Previous cycle still running; skipping tick "
                "(%d skipped so far)",
                self.ticks_skipped,
            )
            return False
        self.runs_started += 1
        logger.info("Starting scheduled cycle #%d", self.runs_started)
        self._current = asyncio.create_task(self._invoke(run_fn))
        return True

    async def _loop(
        self, trigger: BaseTrigger, run_fn: RunFn,
    ) -> None:
        previous: datetime | None = None
        while True:
            now = datetime.now(timezone.utc)
            next_fire = trigger.get_next_fire_time(previous, now)
            # Coalesce fire times missed while the process was asleep
            while next_fire is not None and next_fire < now:
                previous = next_fire
                next_fire = trigger.get_next_fire_time(previous, now)
            if next_fire is None:
                logger.info("Trigger exhausted; scheduler loop ends")
                return
            delay = (next_fire - now).total_seconds()
            logger.debug(
                "Next cycle at %s (in %.1fs)",
                next_fire.isoformat(),
                delay,
            )
            await asyncio.sleep(max(0.0, delay))
            previous = next_fire
            self.tick(run_fn)

    # ── Lifecycle ────────────────────────────────────────

    def start(self, interval: float | str, run_fn: RunFn) -> None:
        """Schedule *run_fn* every *interval* seconds or per a crontab.

        Must be called from inside a running event loop.
        """
        if self.is_started:
            msg = "Scheduler already started"
            raise RuntimeError(msg)
        trigger = build_trigger(interval)
        logger.info("Scheduler started with trigger %s", trigger)
        self._loop_task = asyncio.create_task(
            self._loop(trigger, run_fn)
        )

    def stop(self) -> None:
        """Cancel future ticks; an in-flight run is left alone."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
            logger.info("Scheduler stopped")

    async def wait_idle(self) -> None:
        """Wait for the in-flight run, if any, to finish."""
        if self._current is not None:
            await asyncio.shield(self._current)

    async def join(self) -> None:
        """Wait until the scheduler loop ends (via :meth:`stop`)."""
        task = self._loop_task
        if task is not None:
            await asyncio.wait({task})
