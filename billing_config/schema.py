"""
Configuration schema (``billing_config.schema``).

Frozen dataclasses describing every tunable of the billing system.
Defaults mirror ``sets/default.yaml`` so services can be built without a
file in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

VALID_BILLING_PERIOD_MODES = {"current", "previous"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite://"
    echo: bool = False


@dataclass(frozen=True)
class BillingRules:
    """Invoice arithmetic settings."""

    currency: str = "INR"
    currency_quantum: Decimal = Decimal("0.01")
    gst_rate: Decimal = Decimal("0.18")
    day_divisor: int = 30
    invoice_prefix: str = "INV"

    def __post_init__(self):
        if self.gst_rate < 0:
            raise ValueError(f"gst_rate must be non-negative, got {self.gst_rate}")
        if self.day_divisor <= 0:
            raise ValueError(f"day_divisor must be positive, got {self.day_divisor}")
        if self.currency_quantum <= 0:
            raise ValueError("currency_quantum must be positive")
        if not self.invoice_prefix:
            raise ValueError("invoice_prefix must not be empty")


@dataclass(frozen=True)
class LeaveRules:
    max_days: int = 31

    def __post_init__(self):
        if self.max_days <= 0:
            raise ValueError(f"max_days must be positive, got {self.max_days}")


@dataclass(frozen=True)
class SchedulerConfig:
    invoice_cron: str = "0 1 1 * *"
    billing_period: str = "current"
    tick_interval_seconds: int = 60

    def __post_init__(self):
        if self.billing_period not in VALID_BILLING_PERIOD_MODES:
            raise ValueError(
                f"billing_period must be one of {sorted(VALID_BILLING_PERIOD_MODES)}, "
                f"got '{self.billing_period}'"
            )
        if self.tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be positive")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self):
        if self.level not in VALID_LOG_LEVELS:
            raise ValueError(f"logging level must be one of {sorted(VALID_LOG_LEVELS)}")


@dataclass(frozen=True)
class BillingConfig:
    """Root configuration object returned by ``get_active_config()``."""

    config_id: str = "default"
    version: int = 1
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    billing: BillingRules = field(default_factory=BillingRules)
    leave: LeaveRules = field(default_factory=LeaveRules)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str | None = None
