"""
WarehouseContext -- explicit tenant and actor for every ledger operation.

Every orchestrator and service entry point takes a WarehouseContext as its
first argument.  Nothing reads the active warehouse from ambient state; the
context is also what gets bound into the structured log context.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class WarehouseContext:
    """
    The warehouse an operation runs against and who is running it.

    Guarantees:
        - ``warehouse_name`` is the display name used to derive the
          invoice prefix (see ``generate_warehouse_code``).
    """

    warehouse_id: UUID
    warehouse_name: str
    actor_id: UUID

    def log_fields(self) -> dict[str, str]:
        return {
            "warehouse_id": str(self.warehouse_id),
            "actor_id": str(self.actor_id),
        }
