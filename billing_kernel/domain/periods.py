"""
Billing periods.

A billing period is one calendar month.  ``start``/``end`` are the first
and last calendar days; postings overlap the period when they start on
or before ``end`` and have no end date or end on or after ``start``.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime

from billing_kernel.exceptions import InvalidPeriodError


@dataclass(frozen=True)
class BillingPeriod:
    month: int
    year: int

    def __post_init__(self):
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise InvalidPeriodError(self.month, self.year)
        if not isinstance(self.year, int) or not 1900 <= self.year <= 9999:
            raise InvalidPeriodError(self.month, self.year)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def calendar_days(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    def previous(self) -> "BillingPeriod":
        if self.month == 1:
            return BillingPeriod(12, self.year - 1)
        return BillingPeriod(self.month - 1, self.year)

    def overlaps(self, start_date: date, end_date: date | None) -> bool:
        return start_date <= self.end and (end_date is None or end_date >= self.start)

    @classmethod
    def containing(cls, moment: date | datetime) -> "BillingPeriod":
        return cls(moment.month, moment.year)

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}"
