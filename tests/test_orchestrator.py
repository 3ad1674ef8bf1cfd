"""
End-to-end tests for the conversation flow over the in-memory adapters.
"""

import itertools
import threading
import pytest
from decimal import Decimal

from chatledger.dialogue import DialogueStateStore
from chatledger.ledger import LedgerEngine
from chatledger.models.audit import AuditEventType
from chatledger.models.dialogue import AwaitingAccount, AwaitingCategory, AwaitingMethod
from chatledger.models.messages import InboundEvent
from chatledger.orchestrator import (
    ACTIVE_DIALOGUE_REPLY,
    BUSY_REPLY,
    EXPIRED_REPLY,
    FAILURE_REPLY,
    UNPARSABLE_REPLY,
)

_ids = itertools.count()


def _event(text=None, option=None, conversation_id="c1", event_id=None):
    return InboundEvent(
        event_id=event_id or f"evt-{next(_ids)}",
        conversation_id=conversation_id,
        text=text,
        selected_option=option,
    )


def _event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class BrokenLedger:
    """Ledger stand-in whose postings always fail."""

    def post_draft(self, draft, conversation_id=""):
        raise RuntimeError("disk on fire")


class FailOnceLedger:
    """Ledger wrapper whose first posting fails."""

    def __init__(self, engine):
        self._engine = engine
        self.calls = 0

    def post_draft(self, draft, conversation_id=""):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("write failed")
        return self._engine.post_draft(draft, conversation_id)


class TestImmediatePosting:
    """Tests for messages that need no clarification."""

    def test_complete_message_is_posted(self, make_flow, channel, transaction_repo, account_repo):
        """Test that a complete message is saved and confirmed."""
        flow = make_flow()

        reply = flow.handle(_event("spent 45,90 on groceries with nubank"))

        assert reply.text == "Expense of $45.90 (Groceries, Food > Groceries) on Nubank saved."
        assert reply.options == []
        assert channel.sent[-1].text == reply.text
        assert len(transaction_repo.list_all()) == 1
        assert account_repo.get_account("Nubank").balance == Decimal("45.90")

    def test_long_message_is_posted(self, make_flow, transaction_repo):
        """Test that a message with a very long description is still saved."""
        flow = make_flow()

        reply = flow.handle(_event("spent 45,90 on groceries with nubank " + "organic vegetables " * 15))

        assert reply.text.endswith("saved.")
        assert len(transaction_repo.list_all()) == 1

    def test_transfer_is_posted(self, make_flow, account_repo):
        """Test a complete transfer message."""
        flow = make_flow()

        reply = flow.handle(_event("transferred 200 from checking to savings"))

        assert reply.text == "Transfer of $200.00 from Main Checking to Savings saved."
        assert account_repo.get_account("Savings").balance == Decimal("200.00")

    def test_replayed_event_ignored(self, make_flow, channel, transaction_repo, audit_storage):
        """Test that the same event id is processed once."""
        flow = make_flow()
        event = _event("spent 45,90 on groceries with nubank", event_id="dup-1")

        assert flow.handle(event) is not None
        assert flow.handle(event) is None

        assert len(transaction_repo.list_all()) == 1
        assert len(channel.sent) == 1
        assert AuditEventType.DUPLICATE_EVENT_SUPPRESSED in _event_types(audit_storage)

    def test_unparsable_message(self, make_flow, audit_storage):
        """Test the reply to small talk."""
        reply = make_flow().handle(_event("hello"))

        assert reply.text == UNPARSABLE_REPLY
        assert AuditEventType.MESSAGE_UNPARSABLE in _event_types(audit_storage)


class TestClarification:
    """Tests for multi-turn dialogues."""

    def test_full_dialogue(self, make_flow, ephemeral, transaction_repo, account_repo):
        """Test account -> category -> subcategory -> method, then posting."""
        flow = make_flow()
        states = DialogueStateStore(ephemeral)

        reply = flow.handle(_event("paid 80 for the plumber"))
        assert reply.options[0] == "Main Checking"
        assert isinstance(states.load("c1").pending, AwaitingAccount)

        reply = flow.handle(_event(option=0))
        assert isinstance(states.load("c1").pending, AwaitingCategory)

        flow.handle(_event(option=2))        # Housing
        flow.handle(_event("2"))             # Utilities
        reply = flow.handle(_event("pix"))

        assert reply.text == "Expense of $80.00 (Plumber, Housing > Utilities) on Main Checking saved."
        assert states.load("c1") is None
        entry = transaction_repo.list_all()[0]
        assert (entry.category, entry.subcategory) == ("Housing", "Utilities")
        assert entry.original_category is None
        assert account_repo.get_account("Main Checking").balance == Decimal("920.00")

    def test_replayed_answer_ignored(self, make_flow, ephemeral):
        """Test that a redelivered answer does not advance the dialogue twice."""
        flow = make_flow()
        states = DialogueStateStore(ephemeral)
        flow.handle(_event("paid 80 for the plumber"))

        answer = _event(option=0, event_id="answer-1")
        flow.handle(answer)
        assert flow.handle(answer) is None
        assert isinstance(states.load("c1").pending, AwaitingCategory)

    def test_category_is_learned(self, make_flow, learning, audit_storage):
        """Test that a category supplied twice is applied on its own the third time."""
        flow = make_flow()

        for conversation_id in ("c1", "c2"):
            flow.handle(_event("paid 80 for the plumber with checking", conversation_id=conversation_id))
            flow.handle(_event("housing", conversation_id=conversation_id))
            flow.handle(_event("utilities", conversation_id=conversation_id))
            flow.handle(_event("pix", conversation_id=conversation_id))

        association = learning.get("plumber")
        assert association.confidence == 2
        assert association.subcategory == "Utilities"
        assert _event_types(audit_storage).count(AuditEventType.LEARNING_REINFORCED) == 2

        reply = flow.handle(_event("paid 95 for the plumber with checking", conversation_id="c3"))
        assert reply.text == "How did you pay?"

        reply = flow.handle(_event("pix", conversation_id="c3"))
        assert reply.text == "Expense of $95.00 (Plumber, Housing > Utilities) on Main Checking saved."
        # Detected without asking, so nothing new is learned
        assert learning.get("plumber").confidence == 2

    def test_new_transaction_while_waiting(self, make_flow, ephemeral, transaction_repo):
        """Test that a new transaction does not replace an unanswered question."""
        flow = make_flow()
        states = DialogueStateStore(ephemeral)
        flow.handle(_event("paid 80 for the plumber"))
        before = states.load("c1")

        reply = flow.handle(_event("spent 10 on lunch"))

        assert reply.text.startswith(ACTIVE_DIALOGUE_REPLY)
        assert reply.text.endswith('(or say "cancel")')
        assert reply.options == before.pending.options
        assert states.load("c1") == before
        assert transaction_repo.list_all() == []

    def test_reprompt_keeps_state(self, make_flow, ephemeral, audit_storage):
        """Test that an unusable answer asks the same question again."""
        flow = make_flow()
        states = DialogueStateStore(ephemeral)
        flow.handle(_event("paid 80 for the plumber"))
        before = states.load("c1")

        reply = flow.handle(_event("no idea"))

        assert reply.text.startswith("Sorry, I didn't get that.")
        assert states.load("c1") == before
        assert AuditEventType.CLARIFICATION_REPROMPTED in _event_types(audit_storage)

    def test_cancel(self, make_flow, ephemeral, transaction_repo, audit_storage):
        """Test cancelling a clarification."""
        flow = make_flow()
        flow.handle(_event("paid 80 for the plumber"))

        reply = flow.handle(_event("cancel"))

        assert reply.text == "Okay, I dropped that entry."
        assert DialogueStateStore(ephemeral).load("c1") is None
        assert transaction_repo.list_all() == []
        assert AuditEventType.DIALOGUE_CANCELLED in _event_types(audit_storage)

    def test_answer_mentioning_stop_is_not_cancel(self, make_flow, ephemeral, transaction_repo, audit_storage):
        """Test that an answer which merely contains a cancel word keeps the entry."""
        flow = make_flow()
        flow.handle(_event("spent 12 with nubank"))
        assert isinstance(DialogueStateStore(ephemeral).load("c1").pending, AwaitingCategory)

        reply = flow.handle(_event("transport bus stop"))

        assert reply.text.endswith("saved.")
        entry = transaction_repo.list_all()[0]
        assert (entry.category, entry.subcategory) == ("Transport", "Public Transit")
        assert AuditEventType.DIALOGUE_CANCELLED not in _event_types(audit_storage)

    def test_conversations_are_independent(self, make_flow, ephemeral):
        """Test that a question in one conversation does not block another."""
        flow = make_flow()
        flow.handle(_event("paid 80 for the plumber", conversation_id="c1"))

        reply = flow.handle(_event("spent 45,90 on groceries with nubank", conversation_id="c2"))

        assert reply.text.endswith("saved.")
        assert DialogueStateStore(ephemeral).load("c1") is not None


class TestExpiry:
    """Tests for answers that arrive too late."""

    def test_option_without_dialogue(self, make_flow, audit_storage):
        """Test an option selection with no active question."""
        reply = make_flow().handle(_event(option=0))

        assert reply.text == EXPIRED_REPLY
        assert AuditEventType.DIALOGUE_EXPIRED in _event_types(audit_storage)

    def test_state_expires(self, make_flow, clock, transaction_repo):
        """Test that an answer after the TTL is not applied."""
        flow = make_flow(dialogue_ttl_seconds=60)
        flow.handle(_event("paid 80 for the plumber"))

        clock.advance(61)
        reply = flow.handle(_event(option=0))

        assert reply.text == EXPIRED_REPLY
        assert transaction_repo.list_all() == []

    def test_text_after_expiry_is_a_new_message(self, make_flow, clock, ephemeral):
        """Test that text sent after expiry is interpreted from scratch."""
        flow = make_flow(dialogue_ttl_seconds=60)
        flow.handle(_event("paid 80 for the plumber"))

        clock.advance(61)
        reply = flow.handle(_event("spent 45,90 on groceries with nubank"))

        assert reply.text.endswith("saved.")


class TestFailures:
    """Tests for the top-level error boundary."""

    def test_unexpected_error(self, make_flow, audit_storage):
        """Test that an unexpected failure becomes a reply and an audit event."""
        flow = make_flow(ledger=BrokenLedger())

        reply = flow.handle(_event("spent 45,90 on groceries with nubank"))

        assert reply.text == FAILURE_REPLY
        errors = [e for e in audit_storage.events if e.event_type == AuditEventType.SYSTEM_ERROR]
        assert len(errors) == 1
        assert errors[0].operation == "handle_event"
        assert errors[0].error_message == "disk on fire"
        assert errors[0].conversation_id == "c1"

    def test_failed_completion_keeps_state(self, make_flow, ephemeral):
        """Test that the question survives when the final posting fails."""
        flow = make_flow(ledger=BrokenLedger())
        states = DialogueStateStore(ephemeral)
        flow.handle(_event("paid 80 for the plumber with checking"))
        flow.handle(_event("housing"))
        flow.handle(_event("utilities"))

        reply = flow.handle(_event("pix"))

        assert reply.text == FAILURE_REPLY
        assert isinstance(states.load("c1").pending, AwaitingMethod)

    def test_busy_ledger(self, make_flow, account_repo, transaction_repo, audit_logger, audit_storage):
        """Test that a lock timeout asks the user to retry."""
        lock = threading.Lock()
        lock.acquire()
        ledger = LedgerEngine(
            account_repo, transaction_repo,
            lock=lock, lock_timeout_seconds=0.01, audit_logger=audit_logger,
        )
        flow = make_flow(ledger=ledger)

        reply = flow.handle(_event("spent 45,90 on groceries with nubank"))

        assert reply.text == BUSY_REPLY
        assert transaction_repo.list_all() == []
        assert AuditEventType.LEDGER_LOCK_TIMEOUT in _event_types(audit_storage)

    def test_retry_after_busy_reply(self, make_flow, account_repo, transaction_repo, audit_logger):
        """Test that an event answered with busy is processed when redelivered."""
        lock = threading.Lock()
        lock.acquire()
        ledger = LedgerEngine(
            account_repo, transaction_repo,
            lock=lock, lock_timeout_seconds=0.01, audit_logger=audit_logger,
        )
        flow = make_flow(ledger=ledger)
        event = _event("spent 45,90 on groceries with nubank", event_id="busy-1")

        assert flow.handle(event).text == BUSY_REPLY
        lock.release()
        reply = flow.handle(event)

        assert reply.text.endswith("saved.")
        assert len(transaction_repo.list_all()) == 1
        # Processed once, so a further redelivery is suppressed
        assert flow.handle(event) is None

    def test_retry_after_failure(self, make_flow, engine, transaction_repo):
        """Test that an event whose posting failed is processed when redelivered."""
        flow = make_flow(ledger=FailOnceLedger(engine))
        event = _event("spent 45,90 on groceries with nubank", event_id="fail-1")

        assert flow.handle(event).text == FAILURE_REPLY
        assert flow.handle(event).text.endswith("saved.")
        assert len(transaction_repo.list_all()) == 1

    def test_channel_failure_is_audited(self, make_flow, channel, audit_storage):
        """Test that a failing channel does not raise out of handle."""
        def broken_send(conversation_id, text, options=None):
            raise IOError("channel down")
        channel.send = broken_send

        reply = make_flow().handle(_event("hello"))

        assert reply.text == UNPARSABLE_REPLY
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in _event_types(audit_storage)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
