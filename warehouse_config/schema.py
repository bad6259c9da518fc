"""
Configuration schema (``warehouse_config.schema``).

Frozen dataclasses for every configuration section.  Each section validates
itself in ``__post_init__`` and raises ``ValueError`` on bad values, so a
LedgerConfig that exists is a LedgerConfig that can be used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from warehouse_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class PricingConfig:
    """Per-bag rent for the six-month and twelve-month ladder steps."""

    six_month_rate: Decimal = Decimal("36")
    twelve_month_rate: Decimal = Decimal("55")

    def __post_init__(self):
        if self.six_month_rate < 0:
            raise ValueError("six_month_rate cannot be negative")
        if self.twelve_month_rate < 0:
            raise ValueError("twelve_month_rate cannot be negative")

        logger.info(
            "pricing_config_initialized",
            extra={
                "six_month_rate": str(self.six_month_rate),
                "twelve_month_rate": str(self.twelve_month_rate),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()


@dataclass(frozen=True)
class SequenceConfig:
    """Invoice numbering: the first invoice is ``invoice_base + 1``."""

    invoice_base: int = 1000

    def __post_init__(self):
        if self.invoice_base < 0:
            raise ValueError("invoice_base cannot be negative")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self):
        if not self.url:
            raise ValueError("database url is required")
        if self.pool_size <= 0:
            raise ValueError("pool_size must be positive")
        if self.max_overflow < 0:
            raise ValueError("max_overflow cannot be negative")


@dataclass(frozen=True)
class NotificationConfig:
    enabled: bool = True


@dataclass(frozen=True)
class LedgerConfig:
    """
    The complete runtime configuration.

    Contract:
        Obtained through ``warehouse_config.get_active_config()``.
        ``checksum`` identifies the source document it was parsed from.
    """

    pricing: PricingConfig = field(default_factory=PricingConfig)
    sequences: SequenceConfig = field(default_factory=SequenceConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    checksum: str = ""

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()
