"""
Clarification Dialogue

A slot-filling state machine over TransactionDraft:

    Idle -> AwaitingField(field) -> Completed | Cancelled | Expired

Missing fields are asked for one at a time, in a fixed order:

    amount -> account -> destination (transfers) -> category
           -> subcategory (only when the category has several) -> method

DESIGN DECISION: The machine is pure. It takes a state and an answer and
returns a DialogueReply; persisting the state, posting the finished draft
and expiring old states is the caller's job. This keeps every transition
testable without storage.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from chatledger.interpretation.interpreter import MessageInterpreter
from chatledger.interpretation.lexicon import CANCEL_PHRASES
from chatledger.interpretation.normalizer import keyword_profile
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
from chatledger.models.transaction import (
    PaymentMethod,
    TransactionDraft,
    TransactionKind,
    TRANSFER_CATEGORY,
)

Pending = Union[
    AwaitingAmount,
    AwaitingAccount,
    AwaitingDestination,
    AwaitingCategory,
    AwaitingSubcategory,
    AwaitingMethod,
]

REPROMPT_PREFIX = "Sorry, I didn't get that."


def is_cancel(text: Optional[str]) -> bool:
    """Does the text ask to abandon the clarification?

    Only an answer that opens with a cancel phrase counts, so "bus stop"
    is still an answer.
    """
    if not text:
        return False
    normalized = keyword_profile(text)
    return any(
        normalized == phrase or normalized.startswith(phrase + " ")
        for phrase in CANCEL_PHRASES
    )


class DialogueMachine:
    """Decides the next question for a draft and applies answers to it."""

    def __init__(self, interpreter: MessageInterpreter, currency_symbol: str = "$"):
        self._interpreter = interpreter
        self._currency = currency_symbol

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def start(
        self,
        draft: TransactionDraft,
        conversation_id: str,
        origin_message_id: str,
    ) -> DialogueReply:
        """
        Begin with a freshly interpreted draft.

        Returns COMPLETED straight away when nothing is missing.
        """
        return self._advance(self._autofill(draft), conversation_id, origin_message_id)

    def answer(
        self,
        state: DialogueState,
        text: Optional[str] = None,
        selected_option: Optional[int] = None,
    ) -> DialogueReply:
        """
        Apply one answer to the pending field.

        An answer is either an option index (0-based) or free text. Free
        text may be a 1-based option number (except for amounts) or is run
        through the pending field's extractor.
        """
        if selected_option is None and is_cancel(text):
            return DialogueReply(
                status=DialogueStatus.CANCELLED,
                draft=state.draft,
                prompt="Okay, I dropped that entry.",
            )

        updates = self._resolve(state, text, selected_option)
        if updates is None:
            return DialogueReply(
                status=DialogueStatus.REPROMPT,
                state=state,
                draft=state.draft,
                prompt=f"{REPROMPT_PREFIX} {self.prompt_for(state.pending, state.draft)}",
                options=list(state.pending.options),
            )

        draft = self._autofill(state.draft.model_copy(update=updates))
        return self._advance(
            draft,
            state.conversation_id,
            state.origin_message_id,
            created_at=state.created_at,
        )

    def _advance(
        self,
        draft: TransactionDraft,
        conversation_id: str,
        origin_message_id: str,
        created_at: Optional[datetime] = None,
    ) -> DialogueReply:
        pending = self.next_pending(draft)
        if pending is None:
            return DialogueReply(
                status=DialogueStatus.COMPLETED,
                draft=draft,
                prompt=self.summary(draft),
            )

        now = datetime.utcnow()
        state = DialogueState(
            conversation_id=conversation_id,
            origin_message_id=origin_message_id,
            draft=draft,
            pending=pending,
            created_at=created_at or now,
            updated_at=now,
        )
        return DialogueReply(
            status=DialogueStatus.AWAITING,
            state=state,
            draft=draft,
            prompt=self.prompt_for(pending, draft),
            options=list(pending.options),
        )

    # =========================================================================
    # FIELD PRECEDENCE
    # =========================================================================

    def next_pending(self, draft: TransactionDraft) -> Optional[Pending]:
        """The first missing field, or None when the draft is complete."""
        interpreter = self._interpreter

        if not draft.has_amount:
            return AwaitingAmount()

        if not draft.account:
            return AwaitingAccount(options=interpreter.account_options())

        if draft.kind == TransactionKind.TRANSFER and not draft.destination_account:
            return AwaitingDestination(options=interpreter.account_options(exclude=draft.account))

        if not draft.category:
            return AwaitingCategory(options=interpreter.categories(draft.kind))

        if draft.subcategory is None and draft.kind != TransactionKind.TRANSFER:
            subcategories = interpreter.subcategories(draft.category, draft.kind)
            if len(subcategories) > 1:
                return AwaitingSubcategory(category=draft.category, options=subcategories)

        if not draft.payment_method:
            return AwaitingMethod(options=interpreter.payment_methods())

        return None

    def _autofill(self, draft: TransactionDraft) -> TransactionDraft:
        """Fill whatever follows from fields already known."""
        updates = {}

        if draft.kind == TransactionKind.TRANSFER:
            if draft.payment_method != PaymentMethod.TRANSFER:
                updates["payment_method"] = PaymentMethod.TRANSFER
            if not draft.category:
                updates["category"] = TRANSFER_CATEGORY
        else:
            account = self._interpreter.get_account(draft.account)
            method = self._interpreter.default_method(account, draft.payment_method)
            if method != draft.payment_method:
                updates["payment_method"] = method

            if draft.category and draft.subcategory is None:
                subcategories = self._interpreter.subcategories(draft.category, draft.kind)
                if len(subcategories) == 1:
                    updates["subcategory"] = subcategories[0]

        return draft.model_copy(update=updates) if updates else draft

    # =========================================================================
    # ANSWERS
    # =========================================================================

    def _resolve(
        self,
        state: DialogueState,
        text: Optional[str],
        selected_option: Optional[int],
    ) -> Optional[dict]:
        """Draft updates for an answer, or None when it resolves nothing."""
        pending = state.pending
        draft = state.draft
        interpreter = self._interpreter

        option = self._chosen_option(pending, text, selected_option)
        if selected_option is not None and option is None:
            return None

        if isinstance(pending, AwaitingAmount):
            amount = interpreter.extract_amount(text or "")
            return {"amount": amount} if amount is not None else None

        if isinstance(pending, AwaitingAccount):
            name = option or self._account_name(text)
            return {"account": name} if name else None

        if isinstance(pending, AwaitingDestination):
            name = option or self._account_name(text, exclude=draft.account)
            return {"destination_account": name} if name else None

        if isinstance(pending, AwaitingCategory):
            if option:
                return {"category": option, "subcategory": None}
            match = interpreter.extract_category(text or "", draft.kind)
            if match is None:
                return None
            return {"category": match.category, "subcategory": match.subcategory}

        if isinstance(pending, AwaitingSubcategory):
            subcategory = option or interpreter.extract_subcategory(
                text or "", pending.category, draft.kind
            )
            return {"subcategory": subcategory} if subcategory else None

        if isinstance(pending, AwaitingMethod):
            method = option or interpreter.extract_method(text or "")
            return {"payment_method": method} if method else None

        return None

    @staticmethod
    def _chosen_option(
        pending: Pending,
        text: Optional[str],
        selected_option: Optional[int],
    ) -> Optional[str]:
        options = pending.options
        if selected_option is not None:
            if 0 <= selected_option < len(options):
                return options[selected_option]
            return None

        if isinstance(pending, AwaitingAmount) or not text:
            return None

        stripped = text.strip()
        if stripped.isdigit():
            number = int(stripped)
            if 1 <= number <= len(options):
                return options[number - 1]
        return None

    def _account_name(self, text: Optional[str], exclude: Optional[str] = None) -> Optional[str]:
        account = self._interpreter.extract_account(text or "", exclude=exclude)
        return account.name if account else None

    # =========================================================================
    # WORDING
    # =========================================================================

    def prompt_for(self, pending: Pending, draft: TransactionDraft) -> str:
        """The question asked for a pending field."""
        if isinstance(pending, AwaitingAmount):
            return f'How much was "{draft.description}"?'
        if isinstance(pending, AwaitingAccount):
            if draft.kind == TransactionKind.TRANSFER:
                return "Which account did the money come from?"
            if draft.kind in (TransactionKind.INCOME, TransactionKind.INVESTMENT_SELL):
                return "Which account did the money go into?"
            return "Which account was it?"
        if isinstance(pending, AwaitingDestination):
            return "Which account did the money go to?"
        if isinstance(pending, AwaitingCategory):
            return f'Which category is "{draft.description}"?'
        if isinstance(pending, AwaitingSubcategory):
            return f"Which kind of {pending.category}?"
        if isinstance(pending, AwaitingMethod):
            if draft.kind in (TransactionKind.INCOME, TransactionKind.INVESTMENT_SELL):
                return "How was it received?"
            return "How did you pay?"
        return "Could you tell me more?"

    def format_amount(self, amount: Optional[Decimal]) -> str:
        if amount is None:
            return "?"
        return f"{self._currency}{amount:,.2f}"

    def summary(self, draft: TransactionDraft) -> str:
        """One-line confirmation of a completed draft."""
        amount = self.format_amount(draft.amount)
        if draft.kind == TransactionKind.TRANSFER:
            return f"Transfer of {amount} from {draft.account} to {draft.destination_account} saved."

        category = draft.category
        if draft.subcategory:
            category = f"{category} > {draft.subcategory}"
        text = f"{draft.kind.value.replace('_', ' ').capitalize()} of {amount} ({draft.description}, {category}) on {draft.account} saved."
        if draft.installments > 1:
            text += f" Split into {draft.installments} installments."
        return text
