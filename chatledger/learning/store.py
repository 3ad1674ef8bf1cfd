"""
Learning Store

Remembers which category the user gave for a description, so the next
message with the same words is categorized without asking.

Confidence only ever grows while the user keeps confirming the same
category. A different category replaces the association and starts
over at 1. An association auto-applies once its confidence reaches the
threshold.

The association list is read on every interpretation, so it is cached in
the ephemeral store and invalidated on every reinforcement.
"""

from datetime import datetime
from typing import Optional

import structlog
from pydantic import TypeAdapter

from chatledger.interpretation.normalizer import keyword_profile
from chatledger.interpretation.resolvers import best_learned_association
from chatledger.models.transaction import LearnedAssociation
from chatledger.services.storage.interface import (
    EphemeralStore,
    LearnedAssociationRepository,
)

CACHE_KEY = "learned:associations"

_ASSOCIATIONS = TypeAdapter(list[LearnedAssociation])

logger = structlog.get_logger("chatledger.learning")


class LearningStore:
    """Keyword -> category associations with a read cache."""

    def __init__(
        self,
        repository: LearnedAssociationRepository,
        cache: Optional[EphemeralStore] = None,
        threshold: int = 2,
        cache_ttl_seconds: int = 300,
    ):
        self._repository = repository
        self._cache = cache
        self._threshold = threshold
        self._cache_ttl = cache_ttl_seconds

    @property
    def threshold(self) -> int:
        return self._threshold

    def associations(self) -> list[LearnedAssociation]:
        """Every stored association (cached)."""
        if self._cache is not None and self._cache_ttl > 0:
            cached = self._cache.get(CACHE_KEY)
            if cached is not None:
                return _ASSOCIATIONS.validate_json(cached)

        rows = self._repository.list_associations()
        if self._cache is not None and self._cache_ttl > 0:
            self._cache.put(CACHE_KEY, _ASSOCIATIONS.dump_json(rows).decode(), self._cache_ttl)
        return rows

    def confident_associations(self) -> list[LearnedAssociation]:
        """Associations strong enough to auto-apply."""
        return [a for a in self.associations() if a.confidence >= self._threshold]

    def lookup(self, message: str) -> Optional[LearnedAssociation]:
        """Best auto-applicable association for a message."""
        return best_learned_association(
            keyword_profile(message),
            self.associations(),
            self._threshold,
        )

    def get(self, keyword: str) -> Optional[LearnedAssociation]:
        wanted = keyword_profile(keyword)
        return next(
            (a for a in self.associations() if keyword_profile(a.keyword) == wanted),
            None,
        )

    def reinforce(
        self,
        keyword: str,
        category: str,
        subcategory: Optional[str] = None,
    ) -> LearnedAssociation:
        """
        Record that `keyword` means `category`.

        Same category as before -> confidence + 1.
        New keyword or different category -> confidence 1.
        """
        keyword = keyword_profile(keyword)
        existing = self.get(keyword)

        if existing is not None and keyword_profile(existing.category) == keyword_profile(category):
            association = existing.model_copy(update={
                "confidence": existing.confidence + 1,
                "subcategory": subcategory or existing.subcategory,
                "last_updated": datetime.utcnow(),
            })
        else:
            association = LearnedAssociation(
                keyword=keyword,
                category=category,
                subcategory=subcategory,
                confidence=1,
            )

        self._repository.save_association(association)
        if self._cache is not None:
            self._cache.remove(CACHE_KEY)

        logger.info(
            "association_reinforced",
            keyword=keyword,
            category=category,
            confidence=association.confidence,
        )
        return association
