"""
BatchExecutor -- SAVEPOINT-per-item batch execution.

Contract:
    ``run(task_type, parameters)`` resolves the task, prepares its items and
    executes each one inside its own SAVEPOINT.  A failing item rolls back
    only its own SAVEPOINT; the run continues with the next item.  Failed
    items are logged and reported in the returned ``BatchRunResult``, never
    retried.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
    - Does NOT manage background threads -- that is the scheduler's job.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from billing_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchJobStatus,
    BatchRunResult,
)
from billing_batch.tasks.base import BatchItemInput, BatchTask, TaskRegistry
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.executor")


class BatchExecutor:
    """Runs registered batch tasks with per-item SAVEPOINT isolation."""

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        clock: Clock | None = None,
    ):
        self._session = session
        self._task_registry = task_registry
        self._clock = clock or SystemClock()

    def run(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
    ) -> BatchRunResult:
        """Execute one batch run of ``task_type``.

        Raises:
            TaskNotRegisteredError: If task_type is not in the registry.
        """
        task = self._task_registry.get(task_type)
        params = dict(parameters or {})
        job_id = uuid4()
        start_time = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(job_id=str(job_id)):
            logger.info(
                "batch_run_started",
                extra={"task_type": task_type, "parameters": params},
            )

            try:
                items = task.prepare_items(
                    parameters=params, session=self._session, as_of=started_at,
                )
            except Exception as exc:
                logger.exception("batch_prepare_failed", extra={"task_type": task_type})
                return BatchRunResult(
                    job_id=job_id,
                    task_type=task_type,
                    status=BatchJobStatus.FAILED,
                    total_items=0,
                    succeeded=0,
                    failed=0,
                    skipped=0,
                    parameters=params,
                    started_at=started_at,
                    completed_at=self._clock.now(),
                    duration_ms=int((time.monotonic() - start_time) * 1000),
                    error_summary=f"prepare_items failed: {exc}",
                )

            item_results = tuple(
                self._execute_item(task, item, params, started_at) for item in items
            )

        succeeded = sum(1 for r in item_results if r.status == BatchItemStatus.SUCCEEDED)
        failed = sum(1 for r in item_results if r.status == BatchItemStatus.FAILED)
        skipped = sum(1 for r in item_results if r.status == BatchItemStatus.SKIPPED)

        if failed == 0:
            status = BatchJobStatus.COMPLETED
        elif succeeded == 0 and skipped == 0:
            status = BatchJobStatus.FAILED
        else:
            status = BatchJobStatus.PARTIALLY_COMPLETED

        self._session.flush()
        completed_at = self._clock.now()
        duration_ms = int((time.monotonic() - start_time) * 1000)

        logger.info(
            "batch_run_completed",
            extra={
                "job_id": str(job_id),
                "task_type": task_type,
                "status": status.value,
                "total_items": len(items),
                "succeeded": succeeded,
                "failed": failed,
                "skipped": skipped,
                "duration_ms": duration_ms,
            },
        )

        return BatchRunResult(
            job_id=job_id,
            task_type=task_type,
            status=status,
            total_items=len(items),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            item_results=item_results,
            parameters=params,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=duration_ms,
            error_summary=f"{failed} item(s) failed" if failed else None,
        )

    def _execute_item(
        self,
        task: BatchTask,
        item: BatchItemInput,
        parameters: dict[str, Any],
        as_of: datetime,
    ) -> BatchItemResult:
        item_start = time.monotonic()
        item_started_at = self._clock.now()

        savepoint = self._session.begin_nested()
        try:
            result = task.execute_item(
                item=item, parameters=parameters, session=self._session, as_of=as_of,
            )
            if result.status == BatchItemStatus.SUCCEEDED:
                savepoint.commit()
            else:
                savepoint.rollback()
            status = result.status
            error_code = result.error_code
            error_message = result.error_message
            result_data = result.result_data
        except Exception as exc:
            savepoint.rollback()
            status = BatchItemStatus.FAILED
            error_code = "UNHANDLED_EXCEPTION"
            error_message = str(exc)
            result_data = None
            logger.exception("batch_item_exception", extra={"item_key": item.item_key})

        if status == BatchItemStatus.FAILED:
            logger.warning(
                "batch_item_failed",
                extra={
                    "item_key": item.item_key,
                    "error_code": error_code,
                    "error_message": error_message,
                },
            )
        elif status == BatchItemStatus.SKIPPED:
            logger.info(
                "batch_item_skipped",
                extra={"item_key": item.item_key, "reason": error_code},
            )

        return BatchItemResult(
            item_index=item.item_index,
            item_key=item.item_key,
            status=status,
            error_code=error_code,
            error_message=error_message,
            result_data=result_data,
            duration_ms=int((time.monotonic() - item_start) * 1000),
            started_at=item_started_at,
            completed_at=self._clock.now(),
        )
