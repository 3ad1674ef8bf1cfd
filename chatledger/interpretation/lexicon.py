"""
Built-in Vocabulary

Two kinds of vocabulary live here:

1. FIXED_KIND_RULES - the hard-coded kind lexicon. Scanned before the
   editable table, in order transfer -> income -> expense, and the first
   literal hit wins. A transfer word therefore beats an expense word in
   the same message.
2. DEFAULT_LEXICON - the seed of the editable keyword table. New
   spreadsheets are created with these rows; users edit them freely.

All keywords are written in keyword-profile form (lower case, no accents,
no punctuation).
"""

from dataclasses import dataclass
from typing import Optional

from chatledger.interpretation.normalizer import contains_word
from chatledger.models.transaction import LexiconRow, LexiconTag, TransactionKind


@dataclass(frozen=True)
class KindRule:
    """One ordered matcher: any of `keywords` tags the message as `kind`."""

    kind: TransactionKind
    keywords: tuple[str, ...]
    word_boundary: bool = False

    def match(self, normalized: str) -> Optional[str]:
        """The first keyword found in the message, if any."""
        for keyword in self.keywords:
            if self.word_boundary:
                if contains_word(normalized, keyword):
                    return keyword
            elif keyword in normalized:
                return keyword
        return None


FIXED_KIND_RULES: tuple[KindRule, ...] = (
    KindRule(
        TransactionKind.TRANSFER,
        ("transfer", "moved money", "moved from", "moved to", "sent to my", "move to"),
    ),
    KindRule(
        TransactionKind.INCOME,
        (
            "received", "salary", "income", "earned", "got paid", "refund",
            # Money borrowed or advanced to the user is one case
            "borrowed", "loan from", "salary advance", "cash advance",
        ),
    ),
    KindRule(
        TransactionKind.EXPENSE,
        ("spent", "paid", "bought", "purchase", "expense", "cost", "lent", "bill"),
    ),
)

CANCEL_PHRASES = ("cancel", "stop", "nevermind", "never mind", "forget it")

CURRENCY_WORDS = (
    "r", "rs", "brl", "reais", "real", "usd", "dollar", "dollars", "bucks",
    "eur", "euro", "euros",
)

PREPOSITION_STOPLIST = (
    "on", "in", "at", "for", "with", "to", "from", "into", "via", "using",
    "by", "my", "the", "a", "an", "em", "no", "na", "com", "para", "pelo",
    "pela",
)

DATE_WORDS = {"today": 0, "yesterday": 1}

TITLE_CASE_EXCEPTIONS = frozenset({"and", "or", "of", "de", "da", "do", "das", "dos", "e"})


def _row(tag: LexiconTag, keyword: str, value: str,
         required_kind: Optional[TransactionKind] = None) -> LexiconRow:
    return LexiconRow(tag=tag, keyword=keyword, value=value, required_kind=required_kind)


DEFAULT_LEXICON: tuple[LexiconRow, ...] = (
    # Kinds the fixed lexicon does not cover
    _row(LexiconTag.KIND, "invested", TransactionKind.INVESTMENT_BUY.value),
    _row(LexiconTag.KIND, "investment", TransactionKind.INVESTMENT_BUY.value),
    _row(LexiconTag.KIND, "redeemed", TransactionKind.INVESTMENT_SELL.value),
    _row(LexiconTag.KIND, "redemption", TransactionKind.INVESTMENT_SELL.value),
    _row(LexiconTag.KIND, "sold", TransactionKind.INVESTMENT_SELL.value),
    _row(LexiconTag.KIND, "dividends", TransactionKind.INCOME.value),

    # Payment methods
    _row(LexiconTag.PAYMENT_METHOD, "credit card", "credit"),
    _row(LexiconTag.PAYMENT_METHOD, "credit", "credit"),
    _row(LexiconTag.PAYMENT_METHOD, "debit card", "debit"),
    _row(LexiconTag.PAYMENT_METHOD, "debit", "debit"),
    _row(LexiconTag.PAYMENT_METHOD, "cash", "cash"),
    _row(LexiconTag.PAYMENT_METHOD, "pix", "pix"),
    _row(LexiconTag.PAYMENT_METHOD, "boleto", "boleto"),

    # Categories
    _row(LexiconTag.SUBCATEGORY, "groceries", "Food > Groceries", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "supermarket", "Food > Groceries", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "restaurant", "Food > Restaurants", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "lunch", "Food > Restaurants", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "dinner", "Food > Restaurants", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "coffee", "Food > Coffee", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "fuel", "Transport > Fuel", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "gas station", "Transport > Fuel", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "uber", "Transport > Ride Share", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "taxi", "Transport > Ride Share", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "bus", "Transport > Public Transit", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "subway", "Transport > Public Transit", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "rent", "Housing > Rent", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "electricity", "Housing > Utilities", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "internet", "Housing > Utilities", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "pharmacy", "Health > Pharmacy", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "doctor", "Health > Doctor", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "netflix", "Leisure > Streaming", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "cinema", "Leisure > Movies", TransactionKind.EXPENSE),
    _row(LexiconTag.SUBCATEGORY, "salary", "Income > Salary", TransactionKind.INCOME),
    _row(LexiconTag.SUBCATEGORY, "freelance", "Income > Freelance", TransactionKind.INCOME),
    _row(LexiconTag.SUBCATEGORY, "refund", "Income > Refunds", TransactionKind.INCOME),
    _row(LexiconTag.SUBCATEGORY, "dividends", "Income > Dividends", TransactionKind.INCOME),
    _row(LexiconTag.SUBCATEGORY, "stocks", "Investments > Stocks", TransactionKind.INVESTMENT_BUY),
    _row(LexiconTag.SUBCATEGORY, "fund", "Investments > Funds", TransactionKind.INVESTMENT_BUY),
    _row(LexiconTag.SUBCATEGORY, "stocks", "Investments > Stocks", TransactionKind.INVESTMENT_SELL),
    _row(LexiconTag.SUBCATEGORY, "fund", "Investments > Funds", TransactionKind.INVESTMENT_SELL),
)
