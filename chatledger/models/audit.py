"""
Audit Models for Chat Ledger

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of all operations
2. Debugging information when things go wrong
3. Ability to reconstruct how a message became a ledger entry

Every event names the operation it belongs to and the conversation it
happened in, so a failure can be diagnosed offline.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the message -> ledger pipeline has its own event type.
    """
    # Inbound
    MESSAGE_RECEIVED = "message_received"
    DUPLICATE_EVENT_SUPPRESSED = "duplicate_event_suppressed"
    MESSAGE_UNPARSABLE = "message_unparsable"

    # Dialogue
    CLARIFICATION_REQUESTED = "clarification_requested"
    CLARIFICATION_REPROMPTED = "clarification_reprompted"
    DIALOGUE_CANCELLED = "dialogue_cancelled"
    DIALOGUE_EXPIRED = "dialogue_expired"

    # Ledger
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_REVERSED = "transaction_reversed"
    LEDGER_RECOMPUTED = "ledger_recomputed"
    LEDGER_LOCK_TIMEOUT = "ledger_lock_timeout"

    # Learning
    LEARNING_REINFORCED = "learning_reinforced"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context
    operation: str = Field(
        ...,
        description="Operation the event belongs to (e.g. 'handle_message', 'record')"
    )
    conversation_id: Optional[str] = Field(
        default=None,
        description="Conversation the event happened in"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'dialogue', 'event')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "operation": self.operation,
            "conversation_id": self.conversation_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, operation, conversation_id,
         entity_type, entity_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.operation,
            self.conversation_id or "",
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.message_received(event_id, conversation_id, text)
        event = AuditEventBuilder.transaction_saved(transaction, conversation_id)
    """

    @staticmethod
    def message_received(
        event_id: str,
        conversation_id: str,
        text: Optional[str],
        selected_option: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            operation="handle_message",
            conversation_id=conversation_id,
            entity_type="event",
            entity_id=event_id,
            description="Inbound message received",
            details={
                "text": (text or "")[:200],
                "selected_option": selected_option,
            },
            is_user_action=True,
        )

    @staticmethod
    def duplicate_suppressed(
        event_id: str,
        conversation_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_EVENT_SUPPRESSED,
            severity=AuditSeverity.DEBUG,
            operation="handle_message",
            conversation_id=conversation_id,
            entity_type="event",
            entity_id=event_id,
            description=f"Duplicate event ignored: {event_id}",
        )

    @staticmethod
    def message_unparsable(
        event_id: str,
        conversation_id: str,
        text: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_UNPARSABLE,
            severity=AuditSeverity.WARNING,
            operation="interpret",
            conversation_id=conversation_id,
            entity_type="event",
            entity_id=event_id,
            description="No transaction kind detected",
            details={"text": text[:200]},
        )

    @staticmethod
    def clarification_requested(
        conversation_id: str,
        field: str,
        options: list[str],
        reprompt: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.CLARIFICATION_REPROMPTED
                if reprompt
                else AuditEventType.CLARIFICATION_REQUESTED
            ),
            operation="dialogue",
            conversation_id=conversation_id,
            entity_type="dialogue",
            entity_id=conversation_id,
            description=f"Asked for {field}" + (" again" if reprompt else ""),
            details={"field": field, "option_count": len(options)},
        )

    @staticmethod
    def dialogue_cancelled(
        conversation_id: str,
        field: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DIALOGUE_CANCELLED,
            operation="dialogue",
            conversation_id=conversation_id,
            entity_type="dialogue",
            entity_id=conversation_id,
            description=f"User cancelled while asked for {field}",
            details={"field": field},
            is_user_action=True,
        )

    @staticmethod
    def dialogue_expired(
        conversation_id: str,
        event_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DIALOGUE_EXPIRED,
            severity=AuditSeverity.WARNING,
            operation="dialogue",
            conversation_id=conversation_id,
            entity_type="event",
            entity_id=event_id,
            description="Option selected but no clarification is active",
        )

    @staticmethod
    def transaction_saved(
        transaction_id: UUID,
        conversation_id: str,
        kind: str,
        account: str,
        amount: str,
        entry_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            operation="record",
            conversation_id=conversation_id,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Saved {kind} of {amount} on {account}",
            details={
                "kind": kind,
                "account": account,
                "amount": amount,
                "entry_count": entry_count,
            },
        )

    @staticmethod
    def transaction_reversed(
        transaction_id: UUID,
        conversation_id: Optional[str],
        entry_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REVERSED,
            operation="reverse",
            conversation_id=conversation_id,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Reversed {entry_count} ledger entries",
            details={"entry_count": entry_count},
            is_user_action=True,
        )

    @staticmethod
    def ledger_recomputed(
        transaction_count: int,
        account_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RECOMPUTED,
            operation="full_recompute",
            entity_type="ledger",
            description=(
                f"Recomputed {account_count} accounts from "
                f"{transaction_count} transactions"
            ),
            details={
                "transaction_count": transaction_count,
                "account_count": account_count,
            },
        )

    @staticmethod
    def learning_reinforced(
        keyword: str,
        category: str,
        confidence: int,
        conversation_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEARNING_REINFORCED,
            operation="learn",
            conversation_id=conversation_id,
            entity_type="learned_association",
            entity_id=keyword,
            description=f"'{keyword}' -> {category} (confidence {confidence})",
            details={
                "keyword": keyword,
                "category": category,
                "confidence": confidence,
            },
        )

    @staticmethod
    def lock_timeout(
        operation: str,
        conversation_id: Optional[str],
        timeout_seconds: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOCK_TIMEOUT,
            severity=AuditSeverity.WARNING,
            operation=operation,
            conversation_id=conversation_id,
            entity_type="ledger",
            description=f"Ledger lock not acquired within {timeout_seconds:g}s",
            details={"timeout_seconds": timeout_seconds},
        )

    @staticmethod
    def system_error(
        operation: str,
        error_type: str,
        error_message: str,
        conversation_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            operation=operation,
            conversation_id=conversation_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        operation: str,
        error_message: str,
        conversation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            operation=operation,
            conversation_id=conversation_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
