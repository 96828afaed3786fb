"""
billing_config -- single public entrypoint for billing configuration.

``get_active_config()`` is the only way services obtain configuration.
The file is chosen in this order: the explicit ``path`` argument, the
``BILLING_CONFIG`` environment variable, then ``sets/default.yaml``.
``BILLING_DATABASE_URL`` overrides the database URL of whichever file
was loaded.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path

from billing_config.loader import load_yaml_file, parse_config
from billing_config.schema import (
    BillingConfig,
    BillingRules,
    DatabaseConfig,
    LeaveRules,
    LoggingConfig,
    SchedulerConfig,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """Load, validate and return the active configuration.

    Raises:
        FileNotFoundError: the selected file does not exist.
        ValueError: a value fails schema validation.
    """
    if path is None:
        path = os.environ.get("BILLING_CONFIG") or _DEFAULT_CONFIG_PATH
    config_path = Path(path)

    config = parse_config(load_yaml_file(config_path))

    database_url = os.environ.get("BILLING_DATABASE_URL")
    if database_url:
        config = dataclasses.replace(
            config, database=dataclasses.replace(config.database, url=database_url)
        )

    logger.info(
        "billing_config_loaded",
        extra={
            "config_id": config.config_id,
            "version": config.version,
            "checksum": config.checksum,
            "path": str(config_path),
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "BillingRules",
    "DatabaseConfig",
    "LeaveRules",
    "LoggingConfig",
    "SchedulerConfig",
    "get_active_config",
]
