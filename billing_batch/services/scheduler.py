"""
BatchScheduler -- in-process polling scheduler.

Contract:
    Holds a set of ``ScheduledTask`` entries, each with a cron expression.
    Every tick compares the injected clock against each entry's next fire
    time; due entries run through a fresh session and ``BatchExecutor``,
    committed per run.  A run that was missed (process down, slow tick)
    fires once on the next tick, never once per missed slot.

Non-goals:
    - NOT a distributed scheduler (no leader election).
    - Does NOT handle timezone conversions (cron is evaluated in clock time).
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from billing_batch.domain.schedule import CronSpec, next_fire_time, parse_cron
from billing_batch.domain.types import BatchRunResult, ScheduledTask
from billing_batch.services.executor import BatchExecutor
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import get_logger

logger = get_logger("batch.scheduler")


class BatchScheduler:
    """In-process polling scheduler for cron-driven batch tasks.

    Contract:
        - ``add_schedule()`` registers a task; its first fire time is the
          first cron match after the current clock time.
        - ``tick()`` fires every due schedule and returns how many fired.
        - ``start()`` / ``stop()`` for background thread operation.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        executor_factory: Callable[[Session], BatchExecutor],
        clock: Clock | None = None,
        tick_interval_seconds: int = 60,
    ):
        self._session_factory = session_factory
        self._executor_factory = executor_factory
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._schedules: dict[str, tuple[ScheduledTask, CronSpec]] = {}
        self._next_run: dict[str, datetime] = {}
        self._last_results: dict[str, BatchRunResult] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Schedules
    # -------------------------------------------------------------------------

    def add_schedule(self, schedule: ScheduledTask) -> datetime:
        """Register ``schedule`` and return its first fire time.

        Raises:
            ValueError: duplicate name or invalid cron expression.
        """
        spec = parse_cron(schedule.cron_expression)
        with self._lock:
            if schedule.name in self._schedules:
                raise ValueError(f"Schedule '{schedule.name}' is already registered")
            first = next_fire_time(spec, self._clock.now())
            self._schedules[schedule.name] = (schedule, spec)
            self._next_run[schedule.name] = first
        logger.info(
            "schedule_added",
            extra={
                "schedule": schedule.name,
                "task_type": schedule.task_type,
                "cron": schedule.cron_expression,
                "next_run_at": first.isoformat(),
            },
        )
        return first

    def next_run_at(self, name: str) -> datetime | None:
        return self._next_run.get(name)

    def last_result(self, name: str) -> BatchRunResult | None:
        return self._last_results.get(name)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """Fire due schedules (public for testing).

        Returns the number of schedules that were fired.
        """
        now = self._clock.now()
        with self._lock:
            due = [
                (schedule, spec)
                for name, (schedule, spec) in self._schedules.items()
                if schedule.is_active and self._next_run[name] <= now
            ]

        fired = 0
        for schedule, spec in due:
            if self._stop_event.is_set():
                break
            with self._lock:
                self._next_run[schedule.name] = next_fire_time(spec, now)
            if self._fire(schedule):
                fired += 1
        return fired

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="billing-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current run to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _fire(self, schedule: ScheduledTask) -> bool:
        session = self._session_factory()
        try:
            executor = self._executor_factory(session)
            result = executor.run(schedule.task_type, schedule.parameters)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception(
                "schedule_fire_failed",
                extra={"schedule": schedule.name, "task_type": schedule.task_type},
            )
            return False
        finally:
            session.close()

        self._last_results[schedule.name] = result
        logger.info(
            "schedule_fired",
            extra={
                "schedule": schedule.name,
                "job_id": str(result.job_id),
                "status": result.status.value,
                "succeeded": result.succeeded,
                "failed": result.failed,
                "skipped": result.skipped,
                "next_run_at": self._next_run[schedule.name].isoformat(),
            },
        )
        return True
