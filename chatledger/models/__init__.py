"""
Data Models Package

This package contains all Pydantic models used in the Chat Ledger system.
All data flowing through the system must conform to these schemas.
"""

from chatledger.models.transaction import (
    Account,
    AccountBalance,
    AccountBalanceSnapshot,
    AccountKind,
    ClosingPolicy,
    LearnedAssociation,
    LexiconRow,
    LexiconTag,
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionKind,
    TransactionStatus,
    TransferDirection,
    TRANSFER_CATEGORY,
    to_money,
)
from chatledger.models.dialogue import (
    AwaitingAccount,
    AwaitingAmount,
    AwaitingCategory,
    AwaitingDestination,
    AwaitingMethod,
    AwaitingSubcategory,
    DialogueReply,
    DialogueState,
    DialogueStatus,
)
from chatledger.models.messages import InboundEvent, OutboundMessage
from chatledger.models.query import QueryResult
from chatledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountBalance",
    "AccountBalanceSnapshot",
    "AccountKind",
    "ClosingPolicy",
    "LearnedAssociation",
    "LexiconRow",
    "LexiconTag",
    "PaymentMethod",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "TransactionStatus",
    "TransferDirection",
    "TRANSFER_CATEGORY",
    "to_money",
    # Dialogue models
    "AwaitingAccount",
    "AwaitingAmount",
    "AwaitingCategory",
    "AwaitingDestination",
    "AwaitingMethod",
    "AwaitingSubcategory",
    "DialogueReply",
    "DialogueState",
    "DialogueStatus",
    # Channel models
    "InboundEvent",
    "OutboundMessage",
    # Query models
    "QueryResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
