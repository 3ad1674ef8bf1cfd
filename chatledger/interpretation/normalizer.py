"""
Text Normalization Profiles

Two deterministic profiles over the same input:

- keyword profile: no accents, lower case, punctuation replaced by spaces.
  Every keyword matcher runs on this.
- numeric profile: no accents, lower case, punctuation kept so that
  "1.234,56" survives for the amount parser.

Feeding an extractor the wrong profile is a bug: the keyword profile
destroys decimal separators, the numeric profile leaves punctuation glued
to words.
"""

import re
import unicodedata

_NON_WORD = re.compile(r"[^\w\s]|_")
_SPACES = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Decompose and drop combining marks ("café" -> "cafe")."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def keyword_profile(text: str) -> str:
    """Normalize text for keyword matching."""
    text = strip_accents(text or "").lower()
    text = _NON_WORD.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def numeric_profile(text: str) -> str:
    """Normalize text for number extraction."""
    text = strip_accents(text or "").lower()
    return _SPACES.sub(" ", text).strip()


def word_pattern(phrase: str) -> re.Pattern:
    """Regex matching `phrase` only as whole words."""
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)")


def contains_word(text: str, phrase: str) -> bool:
    """True when `phrase` occurs in `text` delimited by non-word characters."""
    if not phrase:
        return False
    return word_pattern(phrase).search(text) is not None


def collapse_spaces(text: str) -> str:
    return _SPACES.sub(" ", text).strip()
