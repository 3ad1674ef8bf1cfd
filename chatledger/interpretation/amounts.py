"""
Amount and Installment Extraction

All functions here expect numeric-profile text (see normalizer).

Separator rule, applied everywhere:
- both "," and "." present: the one occurring last is the decimal
  separator, the other is a thousands separator and is dropped
- only one kind present: repeated means thousands ("1.234.567"),
  a single occurrence means decimal ("1.234" -> 1.234, "12,5" -> 12.5)

Unparsable input yields 0.0. A non-positive amount means "missing",
never "error".
"""

import math
import re
from typing import Optional

_NUMBER = re.compile(r"(?<![\w.,])-?\d[\d.,]*")

_INSTALLMENT_PATTERNS = (
    re.compile(r"(?<!\w)(?:in\s+|em\s+)?(\d{1,3})\s*x(?!\w)"),
    re.compile(r"(?<!\w)(?:in\s+)?(\d{1,3})\s+(?:times|installments|parcelas|vezes)(?!\w)"),
)


def parse_amount(token: Optional[str]) -> float:
    """
    Parse a numeric token with mixed separators.

    >>> parse_amount("1.234,56")
    1234.56
    >>> parse_amount("1,234.56")
    1234.56
    >>> parse_amount("abc")
    0.0
    """
    if token is None:
        return 0.0

    cleaned = re.sub(r"[^\d.,-]", "", str(token))
    if not any(ch.isdigit() for ch in cleaned):
        return 0.0

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")

    if last_comma >= 0 and last_dot >= 0:
        decimal_sep = "," if last_comma > last_dot else "."
        thousands_sep = "." if decimal_sep == "," else ","
        cleaned = cleaned.replace(thousands_sep, "")
    elif last_comma >= 0 or last_dot >= 0:
        sep = "," if last_comma >= 0 else "."
        if cleaned.count(sep) > 1:
            cleaned = cleaned.replace(sep, "")
            decimal_sep = None
        else:
            decimal_sep = sep
    else:
        decimal_sep = None

    if decimal_sep == ",":
        cleaned = cleaned.replace(",", ".")

    try:
        value = float(cleaned)
    except ValueError:
        return 0.0

    if not math.isfinite(value):
        return 0.0
    return value


def installment_spans(text: str) -> list[tuple[int, int]]:
    """Character spans of installment phrases ("in 3x", "10 times")."""
    spans = []
    for pattern in _INSTALLMENT_PATTERNS:
        spans.extend(m.span() for m in pattern.finditer(text))
    return spans


def find_installments(text: str) -> int:
    """Installment count mentioned in the text, 1 when none."""
    for pattern in _INSTALLMENT_PATTERNS:
        match = pattern.search(text)
        if match:
            count = int(match.group(1))
            return count if count >= 1 else 1
    return 1


def find_amount_token(text: str) -> Optional[str]:
    """
    First numeric token that is not part of an installment phrase.

    Trailing separators are dropped ("paid 50." -> "50").
    """
    skip = installment_spans(text)
    for match in _NUMBER.finditer(text):
        start = match.start()
        if any(lo <= start < hi for lo, hi in skip):
            continue
        token = match.group().rstrip(".,")
        if any(ch.isdigit() for ch in token):
            return token
    return None


def alternate_spelling(token: str) -> str:
    """The same token with "," and "." swapped."""
    return token.translate(str.maketrans({",": ".", ".": ","}))
