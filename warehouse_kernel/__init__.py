"""
Warehouse Kernel - storage ledger core

A ledger for bags of commodity held in rented warehouse storage:
- Tiered, time-based rent on withdrawal
- Withdrawal, reversal and revision kept consistent with bag balances
- Oldest-first payment allocation
- Optimistic concurrency on every storage record update
"""

__version__ = "0.1.0"
