"""
billing_batch.domain.types -- frozen dataclasses for batch runs.

ZERO I/O.  Status fields are str-Enums; collections are tuples so that a
finished run result can be handed around without being mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class BatchJobStatus(str, Enum):
    """Outcome of a whole batch run."""

    COMPLETED = "completed"  # Every item succeeded or was skipped
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed
    FAILED = "failed"  # No item succeeded, or items could not be prepared


class BatchItemStatus(str, Enum):
    """Per-item outcome within a batch run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Intentionally skipped (e.g., already processed)


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of processing a single batch item.

    Each item runs in its own SAVEPOINT -- failure of one item does not
    abort the batch.
    """

    item_index: int  # 0-indexed position in the batch
    item_key: str  # Business identifier (e.g., school_id)
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None  # e.g., {"invoice_number": "..."}
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of one batch run.

    Returned by ``BatchExecutor.run()``.
    """

    job_id: UUID
    task_type: str
    status: BatchJobStatus
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    parameters: dict[str, Any] = field(default_factory=dict)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    error_summary: str | None = None


@dataclass(frozen=True)
class ScheduledTask:
    """A task type fired by the scheduler whenever its cron expression matches."""

    name: str  # Human-readable label (e.g., "monthly-school-invoices")
    task_type: str  # Registered task key
    cron_expression: str
    parameters: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
