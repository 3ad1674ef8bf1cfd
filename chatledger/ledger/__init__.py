"""
Ledger Package

Posting, billing-cycle arithmetic and balance reconciliation.
"""

from chatledger.ledger.billing import installment_due_dates, statement_due_date
from chatledger.ledger.engine import LedgerEngine, compute_balances, signed_delta
from chatledger.ledger.errors import LedgerError, LedgerLockTimeout
from chatledger.ledger.posting import build_entries, split_amount

__all__ = [
    "LedgerEngine",
    "LedgerError",
    "LedgerLockTimeout",
    "build_entries",
    "compute_balances",
    "installment_due_dates",
    "signed_delta",
    "split_amount",
    "statement_due_date",
]
