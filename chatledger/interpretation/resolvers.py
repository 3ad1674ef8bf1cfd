"""
Account, Payment-Method and Category Resolvers

All matchers here take keyword-profile text and score candidates with the
normalized Levenshtein similarity between the whole message and the
candidate keyword. For a keyword contained in the message this is simply
len(keyword) / len(message): longer, more specific mentions score higher.

Ties always go to the first candidate encountered (strict comparison).
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from chatledger.interpretation.normalizer import contains_word, keyword_profile
from chatledger.models.transaction import (
    Account,
    LearnedAssociation,
    LexiconRow,
    LexiconTag,
    PaymentMethod,
    TransactionKind,
    TRANSFER_CATEGORY,
)

FULL_NAME_BOOST = 1.5

DESTINATION_MARKERS = ("to", "into", "para")


def similarity(message: str, keyword: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]."""
    return Levenshtein.normalized_similarity(message, keyword)


# =============================================================================
# ACCOUNTS
# =============================================================================

def _aliases(account: Account) -> list[tuple[str, bool]]:
    """(normalized alias, is full name) pairs, full name first."""
    pairs = [(account.key, True)]
    for alias in account.aliases:
        normalized = keyword_profile(alias)
        if normalized and normalized != account.key:
            pairs.append((normalized, False))
    return pairs


def rank_accounts(normalized: str, accounts: Iterable[Account]) -> list[tuple[float, Account]]:
    """
    Score every account mentioned in the message.

    Consolidated invoices are never candidates. Returned best first;
    equal scores keep encounter order.
    """
    scored = []
    for account in accounts:
        if account.is_consolidated:
            continue
        best = 0.0
        for alias, is_full_name in _aliases(account):
            if not alias or alias not in normalized:
                continue
            score = similarity(normalized, alias)
            if is_full_name:
                score *= FULL_NAME_BOOST
            if score > best:
                best = score
        if best > 0:
            scored.append((best, account))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return scored


def resolve_account(normalized: str, accounts: Iterable[Account]) -> Optional[Account]:
    """The best-scoring account mentioned in the message, if any."""
    ranked = rank_accounts(normalized, accounts)
    return ranked[0][1] if ranked else None


@dataclass(frozen=True)
class _Mention:
    start: int
    end: int
    account: Account


def _mentions(normalized: str, accounts: Iterable[Account]) -> list[_Mention]:
    found = []
    for account in accounts:
        if account.is_consolidated:
            continue
        for alias, _ in _aliases(account):
            if not alias:
                continue
            start = normalized.find(alias)
            while start >= 0:
                found.append(_Mention(start, start + len(alias), account))
                start = normalized.find(alias, start + 1)

    # "santander" inside "santander pf" is not a mention of its own
    kept = [
        m for m in found
        if not any(
            o is not m and o.start <= m.start and m.end <= o.end
            and (o.end - o.start) > (m.end - m.start)
            for o in found
        )
    ]
    kept.sort(key=lambda m: (m.start, -(m.end - m.start)))

    ordered, seen = [], set()
    for mention in kept:
        if mention.account.key in seen:
            continue
        seen.add(mention.account.key)
        ordered.append(mention)
    return ordered


def _is_destination(normalized: str, mention: _Mention) -> bool:
    preceding = normalized[:mention.start].split()
    return bool(preceding) and preceding[-1] in DESTINATION_MARKERS


def resolve_transfer_accounts(
    normalized: str,
    accounts: Iterable[Account],
) -> tuple[Optional[Account], Optional[Account]]:
    """
    Origin and destination of a transfer, in order of appearance.

    A mention right after "to", "into" or "para" is the destination;
    otherwise the first mention is the origin and the second the destination.
    """
    mentions = _mentions(normalized, accounts)
    if not mentions:
        return None, None

    destination = next((m for m in mentions if _is_destination(normalized, m)), None)
    if destination is None:
        origin = mentions[0].account
        target = mentions[1].account if len(mentions) > 1 else None
        return origin, target

    origin = next((m.account for m in mentions if m is not destination), None)
    return origin, destination.account


# =============================================================================
# PAYMENT METHODS
# =============================================================================

def resolve_payment_method(normalized: str, rows: Iterable[LexiconRow]) -> Optional[str]:
    """Value of the highest-similarity `payment_method` row found as whole words."""
    best_value, best_score = None, 0.0
    for row in rows:
        if row.tag != LexiconTag.PAYMENT_METHOD:
            continue
        keyword = keyword_profile(row.keyword)
        if not contains_word(normalized, keyword):
            continue
        score = similarity(normalized, keyword)
        if score > best_score:
            best_value, best_score = row.value, score
    return best_value


def apply_card_override(account: Optional[Account], method: Optional[str]) -> Optional[str]:
    """A card paid with no method (or "debit") is a credit purchase."""
    if account is not None and account.is_card:
        if method in (None, PaymentMethod.NONE, PaymentMethod.DEBIT):
            return PaymentMethod.CREDIT
    return method


def payment_method_values(rows: Iterable[LexiconRow]) -> list[str]:
    """Distinct payment-method values in table order."""
    values = []
    for row in rows:
        if row.tag == LexiconTag.PAYMENT_METHOD and row.value not in values:
            values.append(row.value)
    return values


# =============================================================================
# CATEGORIES
# =============================================================================

@dataclass(frozen=True)
class CategoryMatch:
    """A resolved category and where it came from."""

    category: str
    subcategory: Optional[str]
    keyword: str
    learned: bool = False


def _eligible(row: LexiconRow, kind: Optional[TransactionKind]) -> bool:
    return row.tag == LexiconTag.SUBCATEGORY and (
        row.required_kind is None or row.required_kind == kind
    )


def best_learned_association(
    normalized: str,
    associations: Iterable[LearnedAssociation],
    threshold: int,
) -> Optional[LearnedAssociation]:
    """Highest-confidence association whose keyword the message contains."""
    best = None
    for association in associations:
        if association.confidence < threshold:
            continue
        if not contains_word(normalized, keyword_profile(association.keyword)):
            continue
        if best is None or association.confidence > best.confidence:
            best = association
    return best


def resolve_category(
    normalized: str,
    kind: TransactionKind,
    rows: Iterable[LexiconRow],
    associations: Iterable[LearnedAssociation] = (),
    threshold: int = 2,
) -> Optional[CategoryMatch]:
    """
    Two-tier category lookup.

    Tier 1 is what the user taught us, tier 2 the lexicon. Transfers
    always get the fixed transfer category.
    """
    if kind == TransactionKind.TRANSFER:
        return CategoryMatch(TRANSFER_CATEGORY, None, keyword="")

    learned = best_learned_association(normalized, associations, threshold)
    if learned is not None:
        return CategoryMatch(
            learned.category,
            learned.subcategory,
            keyword=keyword_profile(learned.keyword),
            learned=True,
        )

    best, best_score = None, 0.0
    for row in rows:
        if not _eligible(row, kind):
            continue
        keyword = keyword_profile(row.keyword)
        if not contains_word(normalized, keyword):
            continue
        score = similarity(normalized, keyword)
        if score > best_score:
            category, subcategory = row.category_parts()
            best, best_score = CategoryMatch(category, subcategory, keyword=keyword), score
    return best


def known_categories(rows: Iterable[LexiconRow], kind: Optional[TransactionKind]) -> list[str]:
    """Distinct categories usable for `kind`, in table order."""
    categories = []
    for row in rows:
        if not _eligible(row, kind):
            continue
        category, _ = row.category_parts()
        if category and category not in categories:
            categories.append(category)
    return categories


def subcategories_for(
    rows: Iterable[LexiconRow],
    category: str,
    kind: Optional[TransactionKind],
) -> list[str]:
    """Distinct subcategories of `category` usable for `kind`."""
    wanted = keyword_profile(category)
    subcategories = []
    for row in rows:
        if not _eligible(row, kind):
            continue
        parent, subcategory = row.category_parts()
        if keyword_profile(parent) != wanted or not subcategory:
            continue
        if subcategory not in subcategories:
            subcategories.append(subcategory)
    return subcategories
