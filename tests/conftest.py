"""
Shared fixtures for Chat Ledger tests.

Everything runs against the in-memory adapters: no network, no credentials.
"""

from datetime import date
from decimal import Decimal

import pytest

from chatledger.audit import AuditLogger
from chatledger.dialogue import DialogueMachine, DialogueStateStore
from chatledger.interpretation import DEFAULT_LEXICON, MessageInterpreter
from chatledger.learning import LearningStore
from chatledger.ledger import LedgerEngine
from chatledger.models.transaction import Account, AccountKind
from chatledger.orchestrator import ConversationFlow
from chatledger.services import RecordingChannel
from chatledger.services.storage import (
    InMemoryAccountRepository,
    InMemoryAuditStorage,
    InMemoryEphemeralStore,
    InMemoryLearnedAssociationRepository,
    InMemoryLexiconRepository,
    InMemoryTransactionRepository,
)

TODAY = date(2024, 3, 20)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def sample_accounts() -> list[Account]:
    return [
        Account(
            name="Main Checking",
            aliases=["checking"],
            kind=AccountKind.CHECKING,
            opening_balance=Decimal("1000.00"),
        ),
        Account(name="Savings", kind=AccountKind.CHECKING),
        Account(
            name="Wallet",
            aliases=["cash"],
            kind=AccountKind.CASH,
            opening_balance=Decimal("50.00"),
        ),
        Account(name="Cards Invoice", kind=AccountKind.CONSOLIDATED_INVOICE),
        Account(
            name="Nubank",
            aliases=["purple card"],
            kind=AccountKind.CREDIT_CARD,
            closing_day=15,
            due_day=10,
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


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ephemeral(clock):
    return InMemoryEphemeralStore(clock=clock)


@pytest.fixture
def account_repo():
    return InMemoryAccountRepository(sample_accounts())


@pytest.fixture
def transaction_repo():
    return InMemoryTransactionRepository()


@pytest.fixture
def lexicon_repo():
    return InMemoryLexiconRepository(DEFAULT_LEXICON)


@pytest.fixture
def learned_repo():
    return InMemoryLearnedAssociationRepository()


@pytest.fixture
def learning(learned_repo, ephemeral):
    return LearningStore(learned_repo, cache=ephemeral, threshold=2, cache_ttl_seconds=300)


@pytest.fixture
def interpreter(account_repo, lexicon_repo, learning):
    return MessageInterpreter(account_repo, lexicon_repo, learning)


@pytest.fixture
def machine(interpreter):
    return DialogueMachine(interpreter)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def engine(account_repo, transaction_repo, audit_logger):
    return LedgerEngine(account_repo, transaction_repo, lock_timeout_seconds=1.0, audit_logger=audit_logger)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def make_flow(interpreter, machine, ephemeral, engine, channel, learning, audit_logger):
    """Build a ConversationFlow, optionally with a different ledger engine."""
    def _make(ledger=None, dialogue_ttl_seconds=900):
        return ConversationFlow(
            interpreter=interpreter,
            dialogue=machine,
            states=DialogueStateStore(ephemeral, ttl_seconds=dialogue_ttl_seconds),
            ledger=ledger or engine,
            ephemeral=ephemeral,
            channel=channel,
            learning=learning,
            audit_logger=audit_logger,
            today=lambda: TODAY,
        )
    return _make
