"""
Chat Ledger - Source Package

A conversational personal-finance assistant: free-text messages in,
structured ledger entries out.

DESIGN PRINCIPLES:
1. Interpretation is rule-based and exactly reproducible
2. Ask for one missing field at a time, never guess
3. Balances are never left stale after a user-visible operation
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Chat Ledger Team"
