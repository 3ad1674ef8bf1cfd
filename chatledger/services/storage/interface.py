"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface per kind of stored row.
This allows us to:
1. Keep the reconciliation algorithm storage-agnostic
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

The interface is intentionally simple - we're not building a full ORM.
Just the operations the interpreter, the dialogue and the ledger need.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from chatledger.models.audit import AuditEvent
from chatledger.models.transaction import (
    Account,
    LearnedAssociation,
    LexiconRow,
    Transaction,
    TransactionStatus,
)


class TransactionRepository(ABC):
    """
    Append-only transaction log.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    def append(self, transaction: Transaction) -> None:
        """
        Append one entry to the log.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def append_many(self, transactions: list[Transaction]) -> None:
        """
        Append several entries in a single write.

        Either every entry is stored or none is. Transfer legs and
        installment series go through here.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def list_all(self) -> list[Transaction]:
        """
        Every entry, in the order it was appended.
        """
        pass

    @abstractmethod
    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        """
        Retrieve an entry by its ID.

        Returns:
            The entry if found, None otherwise
        """
        pass

    @abstractmethod
    def update_status(self, transaction_id: UUID, status: TransactionStatus) -> None:
        """
        Change the status of an entry (used for reversals).

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass


class AccountRepository(ABC):
    """Accounts and their stored running balances."""

    @abstractmethod
    def get_account(self, name: str) -> Optional[Account]:
        """
        Look an account up by name, accent and case insensitive.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """Every account, in configuration order."""
        pass

    @abstractmethod
    def set_account_balance(self, name: str, value: Decimal) -> None:
        """
        Overwrite an account's stored value.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass


class LearnedAssociationRepository(ABC):
    """Keyword -> category associations learned from corrections."""

    @abstractmethod
    def list_associations(self) -> list[LearnedAssociation]:
        pass

    @abstractmethod
    def save_association(self, association: LearnedAssociation) -> None:
        """Insert or replace the association for `association.keyword`."""
        pass


class LexiconRepository(ABC):
    """The editable keyword table."""

    @abstractmethod
    def list_rows(self) -> list[LexiconRow]:
        """Rows in table order (order matters for first-match rules)."""
        pass


class EphemeralStore(ABC):
    """
    Keyed store with per-key expiry.

    This is the only memory shared between invocations: dialogue states,
    cached lookups and recently seen event ids live here.
    Values are strings; callers serialize.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Value for `key`, or None when absent or expired."""
        pass

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
