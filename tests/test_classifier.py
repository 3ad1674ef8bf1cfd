"""
Tests for kind classification and the account/method/category resolvers.
"""

import pytest

from chatledger.interpretation import DEFAULT_LEXICON, classify, keyword_profile
from chatledger.interpretation.resolvers import (
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
    LearnedAssociation,
    LexiconRow,
    LexiconTag,
    TransactionKind,
)


def _classify(text, rows=DEFAULT_LEXICON):
    return classify(keyword_profile(text), rows)


class TestClassifier:
    """Tests for the ordered kind rules."""

    def test_expense(self):
        """Test a plain expense."""
        result = _classify("Spent 45 on groceries")
        assert result.kind == TransactionKind.EXPENSE
        assert result.keyword == "spent"

    def test_transfer_beats_expense(self):
        """Test that a transfer word wins over an expense word."""
        result = _classify("paid 200 transfer from checking to savings")
        assert result.kind == TransactionKind.TRANSFER

    def test_income(self):
        """Test an income message."""
        assert _classify("received 3000 salary").kind == TransactionKind.INCOME

    def test_borrowed_money_is_income(self):
        """Test that a loan taken by the user counts as income."""
        assert _classify("borrowed 500 from my brother").kind == TransactionKind.INCOME

    def test_lent_money_is_expense(self):
        """Test that money lent out counts as an expense."""
        assert _classify("lent 100 to a friend").kind == TransactionKind.EXPENSE

    def test_lexicon_kind_row(self):
        """Test a kind only the editable table knows about."""
        result = _classify("invested 1000 in stocks")
        assert result.kind == TransactionKind.INVESTMENT_BUY
        assert result.keyword == "invested"

    def test_lexicon_rows_match_whole_words(self):
        """Test that "sold" does not fire inside "soldier"."""
        assert _classify("my soldier friend 20") is None

    def test_unknown_kind_rows_ignored(self):
        """Test that rows naming an unknown kind are skipped."""
        rows = [LexiconRow(tag=LexiconTag.KIND, keyword="gift", value="donation")]
        assert _classify("gift 50", rows) is None

    def test_nothing_matches(self):
        """Test that small talk is not a transaction."""
        assert _classify("hello there") is None


def _account(name, kind=AccountKind.CHECKING, aliases=(), **extra):
    if kind == AccountKind.CREDIT_CARD:
        extra.setdefault("closing_day", 15)
        extra.setdefault("due_day", 10)
    return Account(name=name, kind=kind, aliases=list(aliases), **extra)


class TestAccountResolver:
    """Tests for account scoring."""

    def test_full_name_boost(self):
        """Test that a full-name mention beats a longer alias of another account."""
        accounts = [
            _account("Personal Savings", aliases=["santander pf"]),
            _account("Santander"),
        ]
        found = resolve_account("paid 45 at the market with santander pf", accounts)
        assert found.name == "Santander"

    def test_tie_goes_to_first_account(self):
        """Test that equal scores keep table order."""
        accounts = [_account("Visa"), _account("Amex")]
        assert resolve_account("paid 10 with amex or visa", accounts).name == "Visa"

    def test_consolidated_invoice_never_resolved(self):
        """Test that consolidated invoices are not candidates."""
        accounts = [_account("Cards Invoice", kind=AccountKind.CONSOLIDATED_INVOICE)]
        assert resolve_account("paid cards invoice 300", accounts) is None

    def test_no_mention(self):
        """Test a message that names no account."""
        assert resolve_account("spent 10 on lunch", [_account("Savings")]) is None


class TestTransferAccounts:
    """Tests for origin/destination detection."""

    @pytest.fixture
    def accounts(self):
        return [
            _account("Main Checking", aliases=["checking"]),
            _account("Savings"),
            _account("Wallet", kind=AccountKind.CASH),
        ]

    def test_order_of_appearance(self, accounts):
        """Test that the first mention is the origin."""
        origin, destination = resolve_transfer_accounts(
            "transfer 200 from checking savings", accounts
        )
        assert origin.name == "Main Checking"
        assert destination.name == "Savings"

    def test_destination_marker_first(self, accounts):
        """Test that "to" marks the destination even when it comes first."""
        origin, destination = resolve_transfer_accounts(
            "moved to savings 200 from checking", accounts
        )
        assert origin.name == "Main Checking"
        assert destination.name == "Savings"

    def test_single_mention_is_origin(self, accounts):
        """Test that a lone mention without a marker is the origin."""
        origin, destination = resolve_transfer_accounts("transfer 50 from wallet", accounts)
        assert origin.name == "Wallet"
        assert destination is None

    def test_single_destination(self, accounts):
        """Test that a lone marked mention is only the destination."""
        origin, destination = resolve_transfer_accounts("transfer 50 to savings", accounts)
        assert origin is None
        assert destination.name == "Savings"

    def test_alias_inside_longer_alias(self):
        """Test that a shorter alias inside a longer mention is not counted twice."""
        accounts = [
            _account("Santander"),
            _account("Personal Savings", aliases=["santander pf"]),
        ]
        origin, destination = resolve_transfer_accounts(
            "transfer 10 from santander pf to santander", accounts
        )
        assert origin.name == "Personal Savings"
        assert destination.name == "Santander"


class TestPaymentMethods:
    """Tests for payment method resolution."""

    def test_most_specific_keyword_wins(self):
        """Test that the longer matching keyword wins."""
        rows = [
            LexiconRow(tag=LexiconTag.PAYMENT_METHOD, keyword="card", value="debit"),
            LexiconRow(tag=LexiconTag.PAYMENT_METHOD, keyword="credit card", value="credit"),
        ]
        assert resolve_payment_method("paid 10 with credit card", rows) == "credit"

    def test_whole_words_only(self):
        """Test that "pix" does not match inside another word."""
        assert resolve_payment_method("paid 10 at pixar store", DEFAULT_LEXICON) is None

    def test_card_override(self):
        """Test that a card with no method or debit becomes credit."""
        card = _account("Nubank", kind=AccountKind.CREDIT_CARD)
        assert apply_card_override(card, None) == "credit"
        assert apply_card_override(card, "debit") == "credit"
        assert apply_card_override(card, "pix") == "pix"

    def test_no_override_for_checking(self):
        """Test that non-card accounts keep the resolved method."""
        assert apply_card_override(_account("Savings"), "debit") == "debit"
        assert apply_card_override(None, None) is None

    def test_method_values_distinct(self):
        """Test the option list of payment methods."""
        values = payment_method_values(DEFAULT_LEXICON)
        assert values == ["credit", "debit", "cash", "pix", "boleto"]


class TestCategoryResolver:
    """Tests for the two-tier category lookup."""

    def _association(self, confidence):
        return LearnedAssociation(
            keyword="market", category="Food", subcategory="Groceries", confidence=confidence
        )

    def test_learned_association_wins_when_confident(self):
        """Test that a confident learned keyword beats the lexicon."""
        match = resolve_category(
            "spent 10 at market for lunch",
            TransactionKind.EXPENSE,
            DEFAULT_LEXICON,
            [self._association(2)],
            threshold=2,
        )
        assert (match.category, match.subcategory) == ("Food", "Groceries")
        assert match.learned is True

    def test_weak_association_ignored(self):
        """Test that associations below the threshold are skipped."""
        match = resolve_category(
            "spent 10 at market for lunch",
            TransactionKind.EXPENSE,
            DEFAULT_LEXICON,
            [self._association(1)],
            threshold=2,
        )
        assert (match.category, match.subcategory) == ("Food", "Restaurants")
        assert match.learned is False

    def test_required_kind(self):
        """Test that rows restricted to another kind are not eligible."""
        assert resolve_category("refund at store", TransactionKind.EXPENSE, DEFAULT_LEXICON) is None
        match = resolve_category("refund at store", TransactionKind.INCOME, DEFAULT_LEXICON)
        assert match.category == "Income"

    def test_transfers_get_fixed_category(self):
        """Test that transfers never look at the lexicon."""
        match = resolve_category("transfer for rent", TransactionKind.TRANSFER, DEFAULT_LEXICON)
        assert match.category == "Transfer"
        assert match.subcategory is None

    def test_known_categories(self):
        """Test the category option list for expenses."""
        assert known_categories(DEFAULT_LEXICON, TransactionKind.EXPENSE) == [
            "Food", "Transport", "Housing", "Health", "Leisure",
        ]

    def test_subcategories_for(self):
        """Test the subcategory option list, case-insensitive on the category."""
        assert subcategories_for(DEFAULT_LEXICON, "food", TransactionKind.EXPENSE) == [
            "Groceries", "Restaurants", "Coffee",
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
