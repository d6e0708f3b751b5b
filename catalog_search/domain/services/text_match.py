# catalog_search/domain/services/text_match.py
"""
Text matching strategies.

A matcher only decides which documents are text candidates, by emitting the
leading aggregation stages for a TextClause. Ranking weights live in the
relevance scorer and are the same whichever matcher is configured.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from bson import ObjectId

from catalog_search.core.config import Settings
from catalog_search.domain.services.predicate import TextClause

# product fields a free-text query is matched against
TEXT_PATHS = ("name", "brand", "description", "variants.sku", "variants.color", "variants.size")


class TextMatcher(ABC):
    name: str

    @abstractmethod
    def stages(self, text: TextClause) -> List[Dict[str, Any]]:
        """Pipeline stages restricting the collection to text candidates."""


class RegexTextMatcher(TextMatcher):
    """Case-insensitive substring match with $regex. Works on any MongoDB deployment."""

    name = "regex"

    def clause(self, text: TextClause) -> Dict[str, Any]:
        pattern = re.escape(text.query)
        ors: List[Dict[str, Any]] = [{path: {"$regex": pattern, "$options": "i"}} for path in TEXT_PATHS]
        if text.category_ids:
            ors.append({"category": {"$in": [ObjectId(c) for c in text.category_ids]}})
        return {"$or": ors}

    def stages(self, text: TextClause) -> List[Dict[str, Any]]:
        return [{"$match": self.clause(text)}]


def _escape_wildcard(query: str) -> str:
    # Atlas wildcard metacharacters: * ? \
    return re.sub(r"([*?\\])", r"\\\1", query)


class AtlasTextMatcher(TextMatcher):
    """
    Atlas Search adapter. Emits a leading $search stage; it must stay the
    first stage of the pipeline. The index should map the text paths with a
    lower-casing keyword analyzer so the wildcard behaves as a
    case-insensitive substring match.
    """

    name = "atlas"

    def __init__(self, index: str = "text_index"):
        self.index = index

    def stages(self, text: TextClause) -> List[Dict[str, Any]]:
        should: List[Dict[str, Any]] = [
            {
                "wildcard": {
                    "query": f"*{_escape_wildcard(text.query.lower())}*",
                    "path": list(TEXT_PATHS),
                    "allowAnalyzedField": True,
                }
            }
        ]
        if text.category_ids:
            should.append({"in": {"path": "category", "value": [ObjectId(c) for c in text.category_ids]}})
        return [{"$search": {"index": self.index, "compound": {"should": should, "minimumShouldMatch": 1}}}]


def get_text_matcher(settings: Settings) -> TextMatcher:
    if settings.text_matcher == "atlas":
        return AtlasTextMatcher(index=settings.atlas_text_index)
    return RegexTextMatcher()
