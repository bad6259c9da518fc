"""Utility helpers."""

from warehouse_kernel.utils.idempotency import (
    generate_idempotency_key,
    idempotency_key_prefix,
)

__all__ = [
    "generate_idempotency_key",
    "idempotency_key_prefix",
]
