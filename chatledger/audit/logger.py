"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability from message to ledger entry
2. Debugging capability (operation name + conversation id on every event)
3. User can see history of their interactions

The audit logger:
- Gracefully handles failures (doesn't crash the app if logging fails)
- Always logs locally through structlog, persists when storage is configured
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from chatledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from chatledger.models.transaction import Transaction, TransferDirection
from chatledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("chatledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_message_received(
        self,
        event_id: str,
        conversation_id: str,
        text: Optional[str],
        selected_option: Optional[int] = None,
    ) -> None:
        self.log(AuditEventBuilder.message_received(
            event_id=event_id,
            conversation_id=conversation_id,
            text=text,
            selected_option=selected_option,
        ))

    def log_duplicate_suppressed(self, event_id: str, conversation_id: str) -> None:
        self.log(AuditEventBuilder.duplicate_suppressed(event_id, conversation_id))

    def log_unparsable(self, event_id: str, conversation_id: str, text: str) -> None:
        self.log(AuditEventBuilder.message_unparsable(event_id, conversation_id, text))

    def log_clarification(
        self,
        conversation_id: str,
        field: str,
        options: list[str],
        reprompt: bool = False,
    ) -> None:
        self.log(AuditEventBuilder.clarification_requested(
            conversation_id=conversation_id,
            field=field,
            options=options,
            reprompt=reprompt,
        ))

    def log_dialogue_cancelled(self, conversation_id: str, field: str) -> None:
        self.log(AuditEventBuilder.dialogue_cancelled(conversation_id, field))

    def log_dialogue_expired(self, conversation_id: str, event_id: str) -> None:
        self.log(AuditEventBuilder.dialogue_expired(conversation_id, event_id))

    def log_transactions_saved(
        self,
        entries: list[Transaction],
        conversation_id: str,
    ) -> None:
        """Log one event for a whole posting (transfer legs, installments)."""
        first = entries[0]
        total = sum(
            (entry.amount for entry in entries
             if entry.transfer_direction != TransferDirection.IN),
            Decimal("0.00"),
        )
        self.log(AuditEventBuilder.transaction_saved(
            transaction_id=first.id,
            conversation_id=conversation_id,
            kind=first.kind.value,
            account=first.account,
            amount=str(total),
            entry_count=len(entries),
        ))

    def log_transaction_reversed(
        self,
        transaction_id: UUID,
        entry_count: int,
        conversation_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_reversed(
            transaction_id=transaction_id,
            conversation_id=conversation_id,
            entry_count=entry_count,
        ))

    def log_ledger_recomputed(self, transaction_count: int, account_count: int) -> None:
        self.log(AuditEventBuilder.ledger_recomputed(transaction_count, account_count))

    def log_learning_reinforced(
        self,
        keyword: str,
        category: str,
        confidence: int,
        conversation_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.learning_reinforced(
            keyword=keyword,
            category=category,
            confidence=confidence,
            conversation_id=conversation_id,
        ))

    def log_lock_timeout(
        self,
        operation: str,
        timeout_seconds: float,
        conversation_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.lock_timeout(
            operation=operation,
            conversation_id=conversation_id,
            timeout_seconds=timeout_seconds,
        ))

    def log_error(
        self,
        operation: str,
        error_type: str,
        error_message: str,
        conversation_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            operation=operation,
            error_type=error_type,
            error_message=error_message,
            conversation_id=conversation_id,
            details=details,
        ))

    def log_external_service_error(
        self,
        service: str,
        operation: str,
        error_message: str,
        conversation_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            operation=operation,
            error_message=error_message,
            conversation_id=conversation_id,
        ))
