"""
Interpretation Package

Deterministic, rule-based extraction of transactions from free text.
No model calls: every decision here can be traced to a keyword.
"""

from chatledger.interpretation.amounts import (
    find_amount_token,
    find_installments,
    parse_amount,
)
from chatledger.interpretation.classifier import Classification, classify
from chatledger.interpretation.description import extract_description
from chatledger.interpretation.interpreter import MessageInterpreter
from chatledger.interpretation.lexicon import CANCEL_PHRASES, DEFAULT_LEXICON
from chatledger.interpretation.normalizer import keyword_profile, numeric_profile
from chatledger.interpretation.resolvers import (
    CategoryMatch,
    resolve_account,
    resolve_category,
    resolve_payment_method,
    resolve_transfer_accounts,
)

__all__ = [
    "CANCEL_PHRASES",
    "CategoryMatch",
    "Classification",
    "DEFAULT_LEXICON",
    "MessageInterpreter",
    "classify",
    "extract_description",
    "find_amount_token",
    "find_installments",
    "keyword_profile",
    "numeric_profile",
    "parse_amount",
    "resolve_account",
    "resolve_category",
    "resolve_payment_method",
    "resolve_transfer_accounts",
]
