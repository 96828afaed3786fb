"""
Configuration Loader (``billing_config.loader``).

Loads a YAML configuration file and parses it into the frozen dataclasses
of ``billing_config.schema``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    BillingConfig,
    BillingRules,
    DatabaseConfig,
    LeaveRules,
    LoggingConfig,
    SchedulerConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a Decimal from YAML, going through str to avoid float noise."""
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name} must be numeric, got {value!r}") from None


def parse_billing(data: dict[str, Any]) -> BillingRules:
    defaults = BillingRules()
    return BillingRules(
        currency=data.get("currency", defaults.currency),
        currency_quantum=parse_decimal(
            data.get("currency_quantum", defaults.currency_quantum), "currency_quantum"
        ),
        gst_rate=parse_decimal(data.get("gst_rate", defaults.gst_rate), "gst_rate"),
        day_divisor=int(data.get("day_divisor", defaults.day_divisor)),
        invoice_prefix=str(data.get("invoice_prefix", defaults.invoice_prefix)),
    )


def parse_config(data: dict[str, Any]) -> BillingConfig:
    """Build a BillingConfig from a parsed YAML mapping."""
    database = data.get("database") or {}
    leave = data.get("leave") or {}
    scheduler = data.get("scheduler") or {}
    logging_section = data.get("logging") or {}

    return BillingConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        database=DatabaseConfig(
            url=database.get("url", DatabaseConfig.url),
            echo=bool(database.get("echo", False)),
        ),
        billing=parse_billing(data.get("billing") or {}),
        leave=LeaveRules(max_days=int(leave.get("max_days", LeaveRules.max_days))),
        scheduler=SchedulerConfig(
            invoice_cron=str(scheduler.get("invoice_cron", SchedulerConfig.invoice_cron)),
            billing_period=str(
                scheduler.get("billing_period", SchedulerConfig.billing_period)
            ),
            tick_interval_seconds=int(
                scheduler.get("tick_interval_seconds", SchedulerConfig.tick_interval_seconds)
            ),
        ),
        logging=LoggingConfig(
            level=str(logging_section.get("level", LoggingConfig.level)).upper()
        ),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the configuration content."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
