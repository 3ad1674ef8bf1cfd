"""
Message Interpreter

Turns one free-text message into a TransactionDraft:

    normalize -> classify -> extract fields -> draft

DESIGN DECISION: Interpretation is pure with respect to the ledger.
It only reads accounts, the lexicon and learned associations, and never
writes. Whatever it cannot resolve is left empty on the draft for the
dialogue machine to ask about; it never guesses.

The field extractors are public so that the dialogue machine can re-run
exactly the same logic on a free-text answer.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional

from chatledger.interpretation.amounts import (
    find_amount_token,
    find_installments,
    parse_amount,
)
from chatledger.interpretation.classifier import Classification, classify
from chatledger.interpretation.description import extract_description
from chatledger.interpretation.lexicon import DATE_WORDS
from chatledger.interpretation.normalizer import (
    contains_word,
    keyword_profile,
    numeric_profile,
)
from chatledger.interpretation.resolvers import (
    CategoryMatch,
    apply_card_override,
    known_categories,
    payment_method_values,
    resolve_account,
    resolve_category,
    resolve_payment_method,
    resolve_transfer_accounts,
    subcategories_for,
)
from chatledger.models.transaction import (
    Account,
    AccountKind,
    LexiconRow,
    LexiconTag,
    PaymentMethod,
    TransactionDraft,
    TransactionKind,
    to_money,
)

if TYPE_CHECKING:
    from chatledger.learning.store import LearningStore
    from chatledger.services.storage.interface import AccountRepository, LexiconRepository


class MessageInterpreter:
    """
    Deterministic text-to-draft pipeline.

    Example:
        >>> interpreter.interpret("spent 45,90 on groceries with nubank", today)
        TransactionDraft(kind=<TransactionKind.EXPENSE: 'expense'>, amount=Decimal('45.90'), ...)
    """

    def __init__(
        self,
        accounts: "AccountRepository",
        lexicon: "LexiconRepository",
        learning: Optional["LearningStore"] = None,
        placeholder_description: str = "General Entry",
    ):
        self._accounts = accounts
        self._lexicon = lexicon
        self._learning = learning
        self._placeholder = placeholder_description

    # =========================================================================
    # WHOLE MESSAGE
    # =========================================================================

    def classify(self, text: str) -> Optional[Classification]:
        return classify(keyword_profile(text), self._lexicon.list_rows())

    def looks_like_transaction(self, text: str) -> bool:
        """A detectable kind and a positive amount."""
        return self.classify(text) is not None and self.extract_amount(text) is not None

    def interpret(self, text: str, today: date) -> Optional[TransactionDraft]:
        """
        Interpret a message.

        Returns:
            A draft (possibly incomplete), or None when no kind was detected
        """
        normalized = keyword_profile(text)
        numeric = numeric_profile(text)
        rows = self._lexicon.list_rows()

        classification = classify(normalized, rows)
        if classification is None:
            return None
        kind = classification.kind
        consumed = [classification.keyword]

        amount_token = find_amount_token(numeric)
        amount = self._to_amount(amount_token)

        accounts = self._accounts.list_accounts()
        destination = None
        if kind == TransactionKind.TRANSFER:
            origin, destination = resolve_transfer_accounts(normalized, accounts)
            method = PaymentMethod.TRANSFER
        else:
            origin = resolve_account(normalized, accounts)
            method = resolve_payment_method(normalized, rows)
            if method is not None:
                consumed.extend(self._method_keywords(normalized, rows, method))
            method = self.default_method(origin, method)

        for account in (origin, destination):
            if account is not None:
                consumed.extend(self._mentioned_aliases(normalized, account))

        match = self._resolve_category(normalized, kind, rows)

        return TransactionDraft(
            kind=kind,
            amount=amount,
            account=origin.name if origin else None,
            destination_account=destination.name if destination else None,
            category=match.category if match else None,
            subcategory=match.subcategory if match else None,
            original_category=match.category if match else None,
            payment_method=method,
            installments=find_installments(numeric),
            description=extract_description(numeric, amount_token, consumed, self._placeholder),
            occurred_on=self._occurred_on(normalized, today),
            message=text,
        )

    # =========================================================================
    # FIELD EXTRACTORS (also used for free-text dialogue answers)
    # =========================================================================

    def extract_amount(self, text: str) -> Optional[Decimal]:
        """Positive amount in the text, or None."""
        return self._to_amount(find_amount_token(numeric_profile(text)))

    def extract_account(self, text: str, exclude: Optional[str] = None) -> Optional[Account]:
        """Best account mentioned in the text, optionally excluding one."""
        return resolve_account(keyword_profile(text), self._candidate_accounts(exclude))

    def extract_category(self, text: str, kind: TransactionKind) -> Optional[CategoryMatch]:
        """Category from an answer: learned/lexicon keywords, then category names."""
        normalized = keyword_profile(text)
        rows = self._lexicon.list_rows()
        match = self._resolve_category(normalized, kind, rows)
        if match is not None:
            return match

        for category in known_categories(rows, kind):
            if contains_word(normalized, keyword_profile(category)):
                return CategoryMatch(category, None, keyword=keyword_profile(category))
        return None

    def extract_subcategory(
        self,
        text: str,
        category: str,
        kind: TransactionKind,
    ) -> Optional[str]:
        normalized = keyword_profile(text)
        for subcategory in self.subcategories(category, kind):
            if contains_word(normalized, keyword_profile(subcategory)):
                return subcategory

        # Keywords of the right category also count ("coffee" -> Coffee)
        match = self._resolve_category(normalized, kind, self._lexicon.list_rows())
        if match and match.subcategory and keyword_profile(match.category) == keyword_profile(category):
            return match.subcategory
        return None

    def extract_method(self, text: str) -> Optional[str]:
        normalized = keyword_profile(text)
        rows = self._lexicon.list_rows()
        method = resolve_payment_method(normalized, rows)
        if method is not None:
            return method
        return next(
            (value for value in payment_method_values(rows) if keyword_profile(value) == normalized),
            None,
        )

    # =========================================================================
    # OPTION LISTS
    # =========================================================================

    def account_options(self, exclude: Optional[str] = None) -> list[str]:
        return [account.name for account in self._candidate_accounts(exclude)]

    def get_account(self, name: Optional[str]) -> Optional[Account]:
        if not name:
            return None
        return self._accounts.get_account(name)

    def categories(self, kind: TransactionKind) -> list[str]:
        return known_categories(self._lexicon.list_rows(), kind)

    def subcategories(self, category: str, kind: TransactionKind) -> list[str]:
        return subcategories_for(self._lexicon.list_rows(), category, kind)

    def payment_methods(self) -> list[str]:
        return payment_method_values(self._lexicon.list_rows())

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _to_amount(token: Optional[str]) -> Optional[Decimal]:
        if token is None:
            return None
        value = parse_amount(token)
        if value <= 0:
            return None
        amount = to_money(value)
        return amount if amount > 0 else None

    @staticmethod
    def _occurred_on(normalized: str, today: date) -> date:
        for word, days_back in DATE_WORDS.items():
            if contains_word(normalized, word):
                return today - timedelta(days=days_back)
        return today

    @staticmethod
    def default_method(account: Optional[Account], method: Optional[str]) -> Optional[str]:
        method = apply_card_override(account, method)
        if method is None and account is not None and account.kind == AccountKind.CASH:
            return PaymentMethod.CASH
        return method

    @staticmethod
    def _method_keywords(normalized: str, rows: Iterable[LexiconRow], value: str) -> list[str]:
        return [
            keyword_profile(row.keyword) for row in rows
            if row.tag == LexiconTag.PAYMENT_METHOD
            and row.value == value
            and contains_word(normalized, keyword_profile(row.keyword))
        ]

    @staticmethod
    def _mentioned_aliases(normalized: str, account: Account) -> list[str]:
        aliases = [account.key] + [keyword_profile(alias) for alias in account.aliases]
        # Longest first so "santander pf" goes before "santander"
        return sorted((a for a in aliases if a and a in normalized), key=len, reverse=True)

    def _candidate_accounts(self, exclude: Optional[str]) -> list[Account]:
        excluded = keyword_profile(exclude) if exclude else None
        return [
            account for account in self._accounts.list_accounts()
            if not account.is_consolidated and account.key != excluded
        ]

    def _resolve_category(
        self,
        normalized: str,
        kind: TransactionKind,
        rows: list[LexiconRow],
    ) -> Optional[CategoryMatch]:
        if self._learning is not None:
            associations = self._learning.confident_associations()
            threshold = self._learning.threshold
        else:
            associations, threshold = [], 1
        return resolve_category(normalized, kind, rows, associations, threshold)
