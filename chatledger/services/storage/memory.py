"""
In-Memory Storage Implementation

Used by the test suite and by local runs without Google credentials.
Follows the same interfaces as the Google Sheets backend, so business
logic cannot tell them apart.

TRADEOFFS:
- Nothing survives a process restart
- Good enough for a single Streamlit process
"""

import threading
import time
from decimal import Decimal
from typing import Callable, Iterable, Optional
from uuid import UUID

from chatledger.interpretation.normalizer import keyword_profile
from chatledger.models.audit import AuditEvent
from chatledger.models.transaction import (
    Account,
    LearnedAssociation,
    LexiconRow,
    Transaction,
    TransactionStatus,
    to_money,
)
from chatledger.services.storage.interface import (
    AccountRepository,
    AuditStorageInterface,
    DuplicateError,
    EphemeralStore,
    LearnedAssociationRepository,
    LexiconRepository,
    NotFoundError,
    TransactionRepository,
)


class InMemoryTransactionRepository(TransactionRepository):
    """Transaction log held in a list."""

    def __init__(self, transactions: Optional[Iterable[Transaction]] = None):
        self._rows: list[Transaction] = list(transactions or [])
        self._guard = threading.Lock()

    def append(self, transaction: Transaction) -> None:
        self.append_many([transaction])

    def append_many(self, transactions: list[Transaction]) -> None:
        with self._guard:
            known = {row.id for row in self._rows}
            for transaction in transactions:
                if transaction.id in known:
                    raise DuplicateError(f"Transaction already stored: {transaction.id}")
            self._rows.extend(t.model_copy(deep=True) for t in transactions)

    def list_all(self) -> list[Transaction]:
        with self._guard:
            return [row.model_copy(deep=True) for row in self._rows]

    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        with self._guard:
            for row in self._rows:
                if row.id == transaction_id:
                    return row.model_copy(deep=True)
        return None

    def update_status(self, transaction_id: UUID, status: TransactionStatus) -> None:
        with self._guard:
            for idx, row in enumerate(self._rows):
                if row.id == transaction_id:
                    self._rows[idx] = row.model_copy(update={"status": status})
                    return
        raise NotFoundError(f"Transaction not found: {transaction_id}")


class InMemoryAccountRepository(AccountRepository):
    """Accounts keyed by normalized name, in insertion order."""

    def __init__(self, accounts: Optional[Iterable[Account]] = None):
        self._accounts: dict[str, Account] = {}
        for account in accounts or []:
            self.add_account(account)

    def add_account(self, account: Account) -> None:
        key = keyword_profile(account.name)
        if key in self._accounts:
            raise DuplicateError(f"Account already exists: {account.name}")
        self._accounts[key] = account.model_copy(deep=True)

    def get_account(self, name: str) -> Optional[Account]:
        account = self._accounts.get(keyword_profile(name))
        return account.model_copy(deep=True) if account else None

    def list_accounts(self) -> list[Account]:
        return [account.model_copy(deep=True) for account in self._accounts.values()]

    def set_account_balance(self, name: str, value: Decimal) -> None:
        key = keyword_profile(name)
        if key not in self._accounts:
            raise NotFoundError(f"Account not found: {name}")
        self._accounts[key] = self._accounts[key].model_copy(
            update={"balance": to_money(value)}
        )


class InMemoryLexiconRepository(LexiconRepository):
    """Fixed keyword table."""

    def __init__(self, rows: Optional[Iterable[LexiconRow]] = None):
        self._rows = list(rows or [])

    def list_rows(self) -> list[LexiconRow]:
        return list(self._rows)


class InMemoryLearnedAssociationRepository(LearnedAssociationRepository):
    """Associations keyed by normalized keyword."""

    def __init__(self, associations: Optional[Iterable[LearnedAssociation]] = None):
        self._rows: dict[str, LearnedAssociation] = {}
        for association in associations or []:
            self.save_association(association)

    def list_associations(self) -> list[LearnedAssociation]:
        return [row.model_copy() for row in self._rows.values()]

    def save_association(self, association: LearnedAssociation) -> None:
        self._rows[keyword_profile(association.keyword)] = association.model_copy()


class InMemoryEphemeralStore(EphemeralStore):
    """
    Dictionary with per-key expiry.

    The clock is injectable so tests can move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: dict[str, tuple[str, float]] = {}
        self._guard = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._guard:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._items[key]
                return None
            return value

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._guard:
            self._items[key] = (value, self._clock() + ttl_seconds)

    def remove(self, key: str) -> None:
        with self._guard:
            self._items.pop(key, None)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events kept in a list (handy for asserting on in tests)."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True
