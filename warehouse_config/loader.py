"""
Configuration Loader (``warehouse_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into the frozen
dataclasses of ``warehouse_config.schema``.  Services never call this
directly; the runtime entry point is ``warehouse_config.get_active_config()``.

Invariants enforced
-------------------
* Money values are parsed through ``str`` into ``Decimal``; YAML floats
  never reach arithmetic.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from warehouse_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    NotificationConfig,
    PricingConfig,
    SequenceConfig,
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
    """Parse a YAML scalar into Decimal."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def parse_pricing(data: dict[str, Any]) -> PricingConfig:
    defaults = PricingConfig.with_defaults()
    return PricingConfig(
        six_month_rate=parse_decimal(
            data.get("six_month_rate", defaults.six_month_rate), "six_month_rate"
        ),
        twelve_month_rate=parse_decimal(
            data.get("twelve_month_rate", defaults.twelve_month_rate), "twelve_month_rate"
        ),
    )


def parse_sequences(data: dict[str, Any]) -> SequenceConfig:
    return SequenceConfig(invoice_base=int(data.get("invoice_base", 1000)))


def parse_database(data: dict[str, Any], url_override: str | None = None) -> DatabaseConfig:
    return DatabaseConfig(
        url=url_override or data.get("url", "sqlite://"),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def parse_notifications(data: dict[str, Any]) -> NotificationConfig:
    return NotificationConfig(enabled=bool(data.get("enabled", True)))


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_ledger_config(
    data: dict[str, Any],
    database_url: str | None = None,
) -> LedgerConfig:
    """
    Build a LedgerConfig from a parsed YAML document.

    Missing sections fall back to their defaults.  ``database_url``, when
    given, replaces ``database.url``.
    """
    return LedgerConfig(
        pricing=parse_pricing(data.get("pricing") or {}),
        sequences=parse_sequences(data.get("sequences") or {}),
        database=parse_database(data.get("database") or {}, database_url),
        notifications=parse_notifications(data.get("notifications") or {}),
        checksum=compute_checksum(data),
    )
