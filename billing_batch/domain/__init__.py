"""billing_batch.domain -- frozen batch DTOs and pure schedule evaluation."""

from billing_batch.domain.schedule import (
    CronSpec,
    matches_cron,
    next_fire_time,
    parse_cron,
)
from billing_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchJobStatus,
    BatchRunResult,
    ScheduledTask,
)

__all__ = [
    "BatchItemResult",
    "BatchItemStatus",
    "BatchJobStatus",
    "BatchRunResult",
    "CronSpec",
    "ScheduledTask",
    "matches_cron",
    "next_fire_time",
    "parse_cron",
]
