"""Services package."""

from chatledger.services.channel import MessageChannel, RecordingChannel
from chatledger.services.storage import (
    AccountRepository,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    EphemeralStore,
    GoogleSheetsAccountRepository,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLearnedAssociationRepository,
    GoogleSheetsLexiconRepository,
    GoogleSheetsTransactionRepository,
    InMemoryAccountRepository,
    InMemoryAuditStorage,
    InMemoryEphemeralStore,
    InMemoryLearnedAssociationRepository,
    InMemoryLexiconRepository,
    InMemoryTransactionRepository,
    LearnedAssociationRepository,
    LexiconRepository,
    NotFoundError,
    StorageError,
    TransactionRepository,
)

__all__ = [
    # Channel
    "MessageChannel",
    "RecordingChannel",
    # Storage interfaces
    "AccountRepository",
    "AuditStorageInterface",
    "EphemeralStore",
    "LearnedAssociationRepository",
    "LexiconRepository",
    "TransactionRepository",
    # Storage exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Storage implementations
    "GoogleSheetsAccountRepository",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLearnedAssociationRepository",
    "GoogleSheetsLexiconRepository",
    "GoogleSheetsTransactionRepository",
    "InMemoryAccountRepository",
    "InMemoryAuditStorage",
    "InMemoryEphemeralStore",
    "InMemoryLearnedAssociationRepository",
    "InMemoryLexiconRepository",
    "InMemoryTransactionRepository",
]
