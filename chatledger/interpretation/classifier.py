"""
Intent Classifier

Decides what kind of money movement a message describes.

Rules are evaluated in a fixed order with early exit:
1. the built-in kind rules (literal substring, transfer -> income -> expense)
2. editable lexicon rows tagged `kind` (whole-word match, first row wins)

No kind means the message is not a transaction at all.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from chatledger.interpretation.lexicon import FIXED_KIND_RULES, KindRule
from chatledger.interpretation.normalizer import keyword_profile
from chatledger.models.transaction import LexiconRow, LexiconTag, TransactionKind


@dataclass(frozen=True)
class Classification:
    """The detected kind and the keyword that triggered it."""

    kind: TransactionKind
    keyword: str


def _lexicon_rules(rows: Iterable[LexiconRow]) -> list[KindRule]:
    rules = []
    for row in rows:
        if row.tag != LexiconTag.KIND:
            continue
        try:
            kind = TransactionKind(row.value.strip().lower())
        except ValueError:
            # Rows naming an unknown kind are ignored
            continue
        rules.append(KindRule(kind, (keyword_profile(row.keyword),), word_boundary=True))
    return rules


def classify(normalized: str, rows: Iterable[LexiconRow] = ()) -> Optional[Classification]:
    """
    Classify a keyword-profile message.

    Args:
        normalized: Message in keyword profile
        rows: Lexicon rows in table order

    Returns:
        Classification, or None when nothing matched
    """
    for rule in (*FIXED_KIND_RULES, *_lexicon_rules(rows)):
        keyword = rule.match(normalized)
        if keyword is not None:
            return Classification(kind=rule.kind, keyword=keyword)
    return None
