"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend serves
tests and local runs. Both are swappable behind the same interfaces.
"""

from chatledger.services.storage.interface import (
    AccountRepository,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    EphemeralStore,
    LearnedAssociationRepository,
    LexiconRepository,
    NotFoundError,
    StorageError,
    TransactionRepository,
)
from chatledger.services.storage.memory import (
    InMemoryAccountRepository,
    InMemoryAuditStorage,
    InMemoryEphemeralStore,
    InMemoryLearnedAssociationRepository,
    InMemoryLexiconRepository,
    InMemoryTransactionRepository,
)
from chatledger.services.storage.google_sheets import (
    GoogleSheetsAccountRepository,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLearnedAssociationRepository,
    GoogleSheetsLexiconRepository,
    GoogleSheetsTransactionRepository,
)

__all__ = [
    # Interfaces
    "AccountRepository",
    "AuditStorageInterface",
    "EphemeralStore",
    "LearnedAssociationRepository",
    "LexiconRepository",
    "TransactionRepository",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountRepository",
    "InMemoryAuditStorage",
    "InMemoryEphemeralStore",
    "InMemoryLearnedAssociationRepository",
    "InMemoryLexiconRepository",
    "InMemoryTransactionRepository",
    # Google Sheets implementation
    "GoogleSheetsAccountRepository",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLearnedAssociationRepository",
    "GoogleSheetsLexiconRepository",
    "GoogleSheetsTransactionRepository",
]
