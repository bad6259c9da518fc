"""
Concurrency tests for versioned storage record updates.

Two sessions against the same file-backed database simulate two requests
racing on one record: the second writer works from a stale read and must
lose the compare-and-swap on ``version_id``.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import warehouse_kernel.models  # noqa: F401  registers tables on Base.metadata
from warehouse_kernel.db.base import Base
from warehouse_kernel.exceptions import OptimisticLockError
from warehouse_kernel.models.storage_record import StorageRecordModel
from warehouse_kernel.services.sequence_service import SequenceService
from warehouse_kernel.services.stores import StorageRecordStore
from warehouse_services.inflow_service import InflowService
from warehouse_services.notifier import NullNotifier
from warehouse_services.outflow_orchestrator import OutflowOrchestrator


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def record_id(session_factory, warehouse_context, customer_id, deterministic_clock):
    session = session_factory()
    try:
        result = InflowService(session, clock=deterministic_clock).create_storage_record(
            warehouse_context, customer_id, "Paddy", 100, date(2023, 1, 1)
        )
        return result.record_id
    finally:
        session.close()


class TestStoreCompareAndSwap:

    def test_stale_update_rejected(self, session_factory, record_id, test_actor_id):
        session_a = session_factory()
        session_b = session_factory()
        try:
            stale = session_a.get(StorageRecordModel, record_id)
            assert stale.version_id == 1

            fresh = session_b.get(StorageRecordModel, record_id)
            StorageRecordStore(session_b).update(
                fresh, test_actor_id, bags_out=10, bags_stored=90
            )
            session_b.commit()

            with pytest.raises(OptimisticLockError) as exc_info:
                StorageRecordStore(session_a).update(
                    stale, test_actor_id, bags_out=20, bags_stored=80
                )
            session_a.rollback()

            assert exc_info.value.entity_id == str(record_id)
        finally:
            session_a.close()
            session_b.close()

        check = session_factory()
        try:
            record = check.get(StorageRecordModel, record_id)
            assert record.bags_stored == 90
            assert record.version_id == 2
        finally:
            check.close()

    def test_immutable_field_rejected(self, session_factory, record_id, test_actor_id):
        session = session_factory()
        try:
            record = session.get(StorageRecordModel, record_id)
            with pytest.raises(ValueError, match="Immutable"):
                StorageRecordStore(session).update(record, test_actor_id, bags_in=5)
        finally:
            session.close()


class TestConcurrentWithdrawals:

    def test_second_withdrawal_from_stale_read_loses(
        self, session_factory, record_id, warehouse_context, deterministic_clock
    ):
        session_a = session_factory()
        session_b = session_factory()
        try:
            # Request A has read the record before request B commits.
            session_a.get(StorageRecordModel, record_id)

            orchestrator_b = OutflowOrchestrator(
                session_b, clock=deterministic_clock, notifier=NullNotifier()
            )
            orchestrator_b.record_withdrawal(warehouse_context, record_id, 40, date(2023, 10, 1))

            orchestrator_a = OutflowOrchestrator(
                session_a, clock=deterministic_clock, notifier=NullNotifier()
            )
            with pytest.raises(OptimisticLockError):
                orchestrator_a.record_withdrawal(warehouse_context, record_id, 30, date(2023, 10, 1))
        finally:
            session_a.close()
            session_b.close()

        check = session_factory()
        try:
            record = check.get(StorageRecordModel, record_id)
            assert record.bags_stored == 60
            assert record.total_rent_billed == Decimal("2200")
            assert record.outflow_invoice_no == "BAMA-OUT-1001"
            assert SequenceService(check).current_value(
                warehouse_context.warehouse_id, SequenceService.INVOICE_OUT
            ) == 1
        finally:
            check.close()
