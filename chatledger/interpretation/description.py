"""
Description Extractor

Whatever is left of a message once everything the interpreter understood
has been taken out becomes the entry's description.
"""

import re
from typing import Iterable, Optional

from chatledger.interpretation.amounts import alternate_spelling, installment_spans
from chatledger.interpretation.lexicon import (
    CURRENCY_WORDS,
    DATE_WORDS,
    PREPOSITION_STOPLIST,
    TITLE_CASE_EXCEPTIONS,
)
from chatledger.interpretation.normalizer import collapse_spaces, keyword_profile
from chatledger.models.transaction import DESCRIPTION_MAX_LENGTH

_NOISE_WORDS = frozenset(DATE_WORDS) | frozenset(CURRENCY_WORDS) | frozenset(PREPOSITION_STOPLIST)
_INFLECTION = r"(?:s|es|d|ed|red|ing|ring)?"


def _remove_amount(text: str, token: str) -> str:
    for spelling in (token, alternate_spelling(token)):
        pattern = re.compile(rf"(?<![\w.,]){re.escape(spelling)}[.,]?(?!\w)")
        text = pattern.sub(" ", text, count=1)
    return text


def _remove_installments(text: str) -> str:
    for start, end in sorted(installment_spans(text), reverse=True):
        text = text[:start] + " " + text[end:]
    return text


def _remove_keyword(text: str, keyword: str) -> str:
    # Inflected forms go too: "transfer" takes "transferred", never "transferwise"
    pattern = re.compile(rf"(?<!\w){re.escape(keyword)}{_INFLECTION}(?!\w)")
    return pattern.sub(" ", text)


def title_case(text: str) -> str:
    words = text.split()
    titled = []
    for idx, word in enumerate(words):
        if idx > 0 and word in TITLE_CASE_EXCEPTIONS:
            titled.append(word)
        else:
            titled.append(word[:1].upper() + word[1:])
    return " ".join(titled)


def extract_description(
    numeric_text: str,
    amount_token: Optional[str],
    consumed_keywords: Iterable[str],
    placeholder: str = "General Entry",
) -> str:
    """
    Build a description from the unconsumed words of a message.

    Args:
        numeric_text: Message in numeric profile
        amount_token: The amount as it appeared in the message, if any
        consumed_keywords: Kind, account and method keywords already used
        placeholder: Returned when fewer than two characters remain

    >>> extract_description("spent 45,90 on groceries at nubank", "45,90", ["spent", "nubank"])
    'Groceries'
    """
    text = numeric_text
    if amount_token:
        text = _remove_amount(text, amount_token)
    text = _remove_installments(text)
    text = keyword_profile(text)

    for keyword in consumed_keywords:
        keyword = keyword_profile(keyword)
        if keyword:
            text = _remove_keyword(text, keyword)

    words = [word for word in text.split() if word not in _NOISE_WORDS]
    text = collapse_spaces(" ".join(words))

    if len(text) < 2:
        return placeholder
    return title_case(text)[:DESCRIPTION_MAX_LENGTH].rstrip()
