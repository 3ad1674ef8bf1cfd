"""Learned keyword -> category associations."""

from chatledger.learning.store import LearningStore

__all__ = ["LearningStore"]
