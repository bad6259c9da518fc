"""
LedgerService -- shared transaction boundary for the ledger services.

Every public service operation runs inside ``_transaction``.  With
``auto_commit=True`` the session is committed on success and rolled back
on any failure; with ``auto_commit=False`` the caller owns the boundary
and only the error translation applies.

Error translation:
    - WarehouseLedgerError subclasses propagate unchanged.
    - StaleDataError becomes OptimisticLockError.
    - Any other SQLAlchemyError becomes LedgerPersistenceError.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from warehouse_kernel.domain.clock import Clock, SystemClock
from warehouse_kernel.exceptions import (
    InvalidAmountError,
    InvalidBagCountError,
    LedgerPersistenceError,
    OptimisticLockError,
    WarehouseLedgerError,
)
from warehouse_services.notifier import LoggingNotifier, Notifier


class LedgerService:
    """Session, clock, notifier and commit policy common to all services."""

    logger: logging.Logger

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()
        self._auto_commit = auto_commit

    @staticmethod
    def _require_positive_bags(bags: int) -> None:
        if isinstance(bags, bool) or not isinstance(bags, int) or bags <= 0:
            raise InvalidBagCountError(bags)

    @staticmethod
    def _require_non_negative(field: str, amount: Decimal) -> Decimal:
        amount = Decimal(amount)
        if amount < 0:
            raise InvalidAmountError(field, str(amount))
        return amount

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        t0 = time.monotonic()
        try:
            yield
            if self._auto_commit:
                self._session.commit()
            self.logger.info(
                f"{operation}_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )
        except WarehouseLedgerError:
            self._rollback()
            self.logger.warning(
                f"{operation}_rejected",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                exc_info=True,
            )
            raise
        except StaleDataError as exc:
            self._rollback()
            self.logger.warning(f"{operation}_version_conflict", exc_info=True)
            raise OptimisticLockError("StorageRecord", "unknown") from exc
        except SQLAlchemyError as exc:
            self._rollback()
            self.logger.error(f"{operation}_failed", exc_info=True)
            raise LedgerPersistenceError(operation, str(exc)) from exc
        except Exception:
            self._rollback()
            self.logger.error(f"{operation}_failed", exc_info=True)
            raise

    def _notify(self, event: str, payload: dict[str, Any]) -> None:
        """Send a notification; a failure is logged and never raised."""
        try:
            self._notifier.notify(event, payload)
        except Exception:
            self.logger.warning(
                "notification_failed",
                extra={"event": event},
                exc_info=True,
            )
