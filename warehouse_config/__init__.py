"""
warehouse_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Rent rates, invoice numbering, database and
    notification settings all come from one YAML document.

Architecture position:
    Configuration -- sits above ``warehouse_kernel`` and beside
    ``warehouse_engines``.  The kernel and the engines MUST NEVER import
    from ``warehouse_config``; services translate config values into
    engine inputs (e.g. ``RentPricing``).

Resolution order:
    1. The ``path`` argument.
    2. The ``WAREHOUSE_LEDGER_CONFIG`` environment variable.
    3. ``warehouse_config/sets/default.yaml``.
    ``DATABASE_URL``, when set, overrides ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``ValueError`` -- a value fails schema validation.

Audit relevance:
    Every successful call emits a ``WAREHOUSE_CONFIG_TRACE`` log entry with
    the source path, checksum and rates in force.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from warehouse_config.loader import load_yaml_file, parse_ledger_config
from warehouse_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    NotificationConfig,
    PricingConfig,
    SequenceConfig,
)

_logger = logging.getLogger("warehouse_ledger.config")

CONFIG_PATH_ENV = "WAREHOUSE_LEDGER_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Non-goals:
        - Does NOT cache; callers hold the returned config for as long as
          they need it.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If configuration validation fails.
    """
    source = Path(path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_FILE)
    if not source.is_file():
        raise FileNotFoundError(f"Configuration file not found: {source}")

    config = parse_ledger_config(
        load_yaml_file(source),
        database_url=os.environ.get(DATABASE_URL_ENV) or None,
    )

    _logger.info(
        "WAREHOUSE_CONFIG_TRACE",
        extra={
            "trace_type": "WAREHOUSE_CONFIG_TRACE",
            "config_path": str(source),
            "checksum": config.checksum,
            "six_month_rate": str(config.pricing.six_month_rate),
            "twelve_month_rate": str(config.pricing.twelve_month_rate),
            "invoice_base": config.sequences.invoice_base,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "LedgerConfig",
    "PricingConfig",
    "SequenceConfig",
    "DatabaseConfig",
    "NotificationConfig",
]
