"""
Idempotency key utilities.

A withdrawal request may carry a caller-supplied key.  The key is stored on
the withdrawal transaction under a unique constraint, so a retried request
finds the original row instead of inserting a second one.  A bulk withdrawal
fans one request key out into one key per record slice.
"""

from uuid import UUID


def generate_idempotency_key(
    operation: str,
    request_key: str,
    record_id: UUID | str,
) -> str:
    """
    Generate the key for one slice of a multi-record operation.

    Format: operation:request_key:record_id

    Example:
        >>> generate_idempotency_key("bulk_withdrawal", "req-17", uuid)
        "bulk_withdrawal:req-17:550e8400-e29b-41d4-a716-446655440000"
    """
    return f"{operation}:{request_key}:{record_id}"


def idempotency_key_prefix(operation: str, request_key: str) -> str:
    """Prefix shared by every slice key of one request."""
    return f"{operation}:{request_key}:"

