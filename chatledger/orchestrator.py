"""
Main Orchestrator for Chat Ledger

This module ties together all the components and defines the
end-to-end flow for one inbound chat event:

    duplicate check -> (active dialogue ? answer it : interpret)
        -> complete draft  -> ledger (+ learning when the user supplied the category)
        -> missing fields  -> ask, one field at a time

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every inbound event id is processed at most once
- Nothing reaches the ledger until every required field is known
- One clarification per conversation; a new transaction never silently
  replaces an unanswered one
- Every step is audited, and no exception escapes `handle`

Each call to `handle` is independent. Whatever must survive between
calls (dialogue states, recently seen event ids, cached associations)
lives in the ephemeral store.
"""

import threading
from datetime import date
from typing import Callable, Optional

import structlog

from chatledger.audit import AuditLogger
from chatledger.config import get_settings
from chatledger.dialogue import DialogueMachine, DialogueStateStore
from chatledger.interpretation import MessageInterpreter, keyword_profile
from chatledger.interpretation.lexicon import DEFAULT_LEXICON
from chatledger.learning import LearningStore
from chatledger.ledger import LedgerEngine, LedgerLockTimeout
from chatledger.models.dialogue import DialogueReply, DialogueState, DialogueStatus
from chatledger.models.messages import InboundEvent, OutboundMessage
from chatledger.models.transaction import (
    Account,
    AccountKind,
    TransactionDraft,
    TransactionKind,
)
from chatledger.services import MessageChannel, RecordingChannel
from chatledger.services.storage import (
    EphemeralStore,
    GoogleSheetsAccountRepository,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLearnedAssociationRepository,
    GoogleSheetsLexiconRepository,
    GoogleSheetsTransactionRepository,
    InMemoryAccountRepository,
    InMemoryEphemeralStore,
    InMemoryLearnedAssociationRepository,
    InMemoryLexiconRepository,
    InMemoryTransactionRepository,
    StorageError,
)

logger = structlog.get_logger("chatledger.orchestrator")

UNPARSABLE_REPLY = (
    "I couldn't tell what kind of entry that is. Try something like "
    '"spent 45.90 on groceries with nubank" or "received 3000 salary".'
)
BUSY_REPLY = "The ledger is busy right now. Please try again in a moment."
FAILURE_REPLY = "Something went wrong on my side and nothing was saved. Please try again."
EXPIRED_REPLY = "That question has expired. Please send the entry again."
ACTIVE_DIALOGUE_REPLY = "I'm still waiting on your previous entry."


def _event_key(event: InboundEvent) -> str:
    return f"event:{event.event_id}"


class ConversationFlow:
    """
    Orchestrates one conversation turn.

    Flow:
    1. Suppress replays of an already seen event id
    2. Resume the active clarification, or interpret a fresh message
    3. Ask for the next missing field, or post the completed draft
    4. Reinforce the learning store when the user supplied the category
    5. Reply through the message channel
    """

    def __init__(
        self,
        interpreter: MessageInterpreter,
        dialogue: DialogueMachine,
        states: DialogueStateStore,
        ledger: LedgerEngine,
        ephemeral: EphemeralStore,
        channel: MessageChannel,
        learning: Optional[LearningStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        duplicate_window_seconds: int = 120,
        placeholder_description: str = "General Entry",
        today: Callable[[], date] = date.today,
    ):
        self._interpreter = interpreter
        self._dialogue = dialogue
        self._states = states
        self._ledger = ledger
        self._ephemeral = ephemeral
        self._channel = channel
        self._learning = learning
        self._audit_logger = audit_logger or AuditLogger()
        self._duplicate_window = max(duplicate_window_seconds, 60)
        self._placeholder = placeholder_description
        self._today = today
        self._seen_guard = threading.Lock()

    @property
    def ledger(self) -> LedgerEngine:
        return self._ledger

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def handle(self, event: InboundEvent) -> Optional[OutboundMessage]:
        """
        Process one inbound event.

        This is the top-level error boundary: failures are audited and
        turned into a reply, never raised.

        Returns:
            The reply sent, or None when the event was a replay
        """
        conversation_id = event.conversation_id

        if self._is_duplicate(event):
            self._audit_logger.log_duplicate_suppressed(event.event_id, conversation_id)
            return None

        self._audit_logger.log_message_received(
            event_id=event.event_id,
            conversation_id=conversation_id,
            text=event.text,
            selected_option=event.selected_option,
        )

        try:
            text, options = self._dispatch(event)
        except LedgerLockTimeout:
            self._forget(event)
            text, options = BUSY_REPLY, []
        except Exception as e:
            self._forget(event)
            self._audit_logger.log_error(
                operation="handle_event",
                error_type=type(e).__name__,
                error_message=str(e),
                conversation_id=conversation_id,
                details={"event_id": event.event_id},
            )
            text, options = FAILURE_REPLY, []

        return self._reply(event, text, options)

    def _is_duplicate(self, event: InboundEvent) -> bool:
        key = _event_key(event)
        with self._seen_guard:
            if self._ephemeral.get(key) is not None:
                return True
            self._ephemeral.put(key, event.conversation_id, self._duplicate_window)
            return False

    def _forget(self, event: InboundEvent) -> None:
        """Drop the seen marker so a redelivery of a failed event is processed."""
        with self._seen_guard:
            self._ephemeral.remove(_event_key(event))

    def _reply(self, event: InboundEvent, text: str, options: list[str]) -> OutboundMessage:
        message = OutboundMessage(
            conversation_id=event.conversation_id,
            text=text,
            options=options,
            in_reply_to=event.event_id,
        )
        try:
            self._channel.send(event.conversation_id, text, options)
        except Exception as e:
            self._audit_logger.log_external_service_error(
                service="channel",
                operation="send",
                error_message=str(e),
                conversation_id=event.conversation_id,
            )
        return message

    # =========================================================================
    # ROUTING
    # =========================================================================

    def _dispatch(self, event: InboundEvent) -> tuple[str, list[str]]:
        state = self._states.load(event.conversation_id)
        if state is not None:
            return self._continue(state, event)

        if event.is_option_selection:
            # The state this option belonged to is gone
            self._audit_logger.log_dialogue_expired(event.conversation_id, event.event_id)
            return EXPIRED_REPLY, []

        return self._start(event)

    def _start(self, event: InboundEvent) -> tuple[str, list[str]]:
        draft = self._interpreter.interpret(event.text or "", self._today())
        if draft is None:
            self._audit_logger.log_unparsable(event.event_id, event.conversation_id, event.text or "")
            return UNPARSABLE_REPLY, []

        reply = self._dialogue.start(draft, event.conversation_id, event.event_id)
        return self._apply(reply, event.conversation_id)

    def _continue(self, state: DialogueState, event: InboundEvent) -> tuple[str, list[str]]:
        if not event.is_option_selection and self._interpreter.looks_like_transaction(event.text or ""):
            prompt = self._dialogue.prompt_for(state.pending, state.draft)
            return (
                f'{ACTIVE_DIALOGUE_REPLY} {prompt} (or say "cancel")',
                list(state.pending.options),
            )

        reply = self._dialogue.answer(state, event.text, event.selected_option)
        return self._apply(reply, event.conversation_id, previous=state)

    def _apply(
        self,
        reply: DialogueReply,
        conversation_id: str,
        previous: Optional[DialogueState] = None,
    ) -> tuple[str, list[str]]:
        if reply.status == DialogueStatus.AWAITING:
            self._states.save(reply.state)
            self._audit_logger.log_clarification(
                conversation_id, reply.state.pending.waiting_for, reply.options,
            )
            return reply.prompt, reply.options

        if reply.status == DialogueStatus.REPROMPT:
            self._audit_logger.log_clarification(
                conversation_id, reply.state.pending.waiting_for, reply.options, reprompt=True,
            )
            return reply.prompt, reply.options

        if reply.status == DialogueStatus.CANCELLED:
            self._states.remove(conversation_id)
            field = previous.pending.waiting_for if previous else ""
            self._audit_logger.log_dialogue_cancelled(conversation_id, field)
            return reply.prompt, []

        # COMPLETED: the state is only dropped once the entries are stored
        self._ledger.post_draft(reply.draft, conversation_id)
        if previous is not None:
            self._states.remove(conversation_id)
        self._learn(reply.draft, conversation_id)
        return reply.prompt, []

    # =========================================================================
    # LEARNING
    # =========================================================================

    def _learn(self, draft: TransactionDraft, conversation_id: str) -> None:
        """Reinforce description -> category when the user had to supply it."""
        if self._learning is None or draft.kind == TransactionKind.TRANSFER:
            return
        if draft.original_category is not None or not draft.category:
            return

        keyword = keyword_profile(draft.description)
        if not keyword or keyword == keyword_profile(self._placeholder):
            return

        try:
            association = self._learning.reinforce(keyword, draft.category, draft.subcategory)
        except StorageError as e:
            self._audit_logger.log_error(
                operation="reinforce_learning",
                error_type=type(e).__name__,
                error_message=str(e),
                conversation_id=conversation_id,
            )
            return

        self._audit_logger.log_learning_reinforced(
            keyword=association.keyword,
            category=association.category,
            confidence=association.confidence,
            conversation_id=conversation_id,
        )


# =============================================================================
# FACTORY
# =============================================================================

def demo_accounts() -> list[Account]:
    """Accounts used when no spreadsheet is configured."""
    return [
        Account(name="Main Checking", aliases=["checking", "bank"], kind=AccountKind.CHECKING),
        Account(name="Savings", kind=AccountKind.CHECKING),
        Account(name="Wallet", aliases=["cash"], kind=AccountKind.CASH),
        Account(name="Cards Invoice", kind=AccountKind.CONSOLIDATED_INVOICE),
        Account(
            name="Nubank",
            aliases=["purple card"],
            kind=AccountKind.CREDIT_CARD,
            closing_day=15,
            due_day=22,
            parent="Cards Invoice",
        ),
        Account(
            name="Santander Card",
            aliases=["santander"],
            kind=AccountKind.CREDIT_CARD,
            closing_day=5,
            due_day=12,
            parent="Cards Invoice",
        ),
    ]


def create_app_components(
    channel: Optional[MessageChannel] = None,
    use_storage: bool = True,
) -> tuple[ConversationFlow, LedgerEngine, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        channel: Where replies go. Defaults to a RecordingChannel.
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for testing without storage.

    Returns:
        (conversation_flow, ledger_engine, sheets_client)
    """
    settings = get_settings()
    ledger_settings = settings.ledger

    sheets_client = None
    audit_logger = None

    if use_storage and settings.app.use_google_sheets:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            transactions = GoogleSheetsTransactionRepository(sheets_client)
            accounts = GoogleSheetsAccountRepository(sheets_client)
            lexicon = GoogleSheetsLexiconRepository(sheets_client)
            learned = GoogleSheetsLearnedAssociationRepository(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        transactions = InMemoryTransactionRepository()
        accounts = InMemoryAccountRepository(demo_accounts())
        lexicon = InMemoryLexiconRepository(DEFAULT_LEXICON)
        learned = InMemoryLearnedAssociationRepository()
        audit_logger = AuditLogger()  # Local-only logging

    ephemeral = InMemoryEphemeralStore()
    learning = LearningStore(
        learned,
        cache=ephemeral,
        threshold=ledger_settings.learning_threshold,
        cache_ttl_seconds=ledger_settings.learning_cache_ttl_seconds,
    )
    interpreter = MessageInterpreter(
        accounts,
        lexicon,
        learning,
        placeholder_description=ledger_settings.placeholder_description,
    )
    ledger_engine = LedgerEngine(
        accounts,
        transactions,
        lock_timeout_seconds=ledger_settings.lock_timeout_seconds,
        audit_logger=audit_logger,
    )

    flow = ConversationFlow(
        interpreter=interpreter,
        dialogue=DialogueMachine(interpreter, currency_symbol=ledger_settings.currency_symbol),
        states=DialogueStateStore(ephemeral, ttl_seconds=ledger_settings.dialogue_ttl_seconds),
        ledger=ledger_engine,
        ephemeral=ephemeral,
        channel=channel or RecordingChannel(),
        learning=learning,
        audit_logger=audit_logger,
        duplicate_window_seconds=ledger_settings.duplicate_window_seconds,
        placeholder_description=ledger_settings.placeholder_description,
    )

    return flow, ledger_engine, sheets_client
