"""
Notifier -- outbound notifications after a ledger write has committed.

Responsibility:
    Interface for telling a customer that bags left storage or a payment
    was received.  SMS or e-mail delivery lives outside this package; the
    default implementation only writes a structured log line.

Invariants enforced:
    - Notifications are sent after commit.  A failing notifier never rolls
      back or fails the ledger operation; the orchestrator logs and moves on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from warehouse_kernel.logging_config import get_logger

logger = get_logger("services.notifier")


class Notifier(ABC):
    """Sends one notification for a named ledger event."""

    @abstractmethod
    def notify(self, event: str, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier(Notifier):
    """Writes the notification as a structured log record."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("notification_sent", extra={"event": event, "payload": payload})


class NullNotifier(Notifier):
    """Drops every notification."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        return None
