# catalog_search/domain/services/predicate.py
"""
Immutable search predicate.

One closed field per filterable dimension. Every builder returns a new
Predicate; nothing is mutated in place, so the facet calculator can derive
"everything except dimension X" with ``without(X)`` from the same value the
ranked query uses.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from bson.regex import Regex
from pydantic import BaseModel


class Dimension(str, Enum):
    CATEGORY = "category"
    BRAND = "brand"
    SIZE = "size"
    COLOR = "color"
    PRICE = "price"
    RATING = "rating"
    TEXT = "text"


# dimensions rendered by Predicate.to_mql(); TEXT is rendered by a TextMatcher
STRUCTURAL_DIMENSIONS: Tuple[Dimension, ...] = (
    Dimension.CATEGORY,
    Dimension.BRAND,
    Dimension.SIZE,
    Dimension.COLOR,
    Dimension.PRICE,
    Dimension.RATING,
)

_CLEARED: Dict[Dimension, Dict[str, Any]] = {
    Dimension.CATEGORY: {"category_id": None},
    Dimension.BRAND: {"brands": ()},
    Dimension.SIZE: {"sizes": ()},
    Dimension.COLOR: {"colors": ()},
    Dimension.PRICE: {"min_price": None, "max_price": None},
    Dimension.RATING: {"min_rating": None},
    Dimension.TEXT: {"text": None},
}


class TextClause(BaseModel):
    """Free-text query plus the categories whose name or slug contains it."""
    query: str
    category_ids: Tuple[str, ...] = ()
    model_config = {"frozen": True}


def exact_ci(value: str) -> Regex:
    """Case-insensitive whole-value match."""
    return Regex(f"^{re.escape(value)}$", "i")


def _any_of(path: str, values: Tuple[str, ...]) -> Dict[str, Any]:
    if len(values) == 1:
        return {path: {"$regex": f"^{re.escape(values[0])}$", "$options": "i"}}
    return {path: {"$in": [exact_ci(v) for v in values]}}


def _range(path: str, gte: Optional[float], lte: Optional[float]) -> Optional[Dict[str, Any]]:
    ops: Dict[str, Any] = {}
    if gte is not None:
        ops["$gte"] = gte
    if lte is not None:
        ops["$lte"] = lte
    return {path: ops} if ops else None


class Predicate(BaseModel):
    category_id: Optional[str] = None
    brands: Tuple[str, ...] = ()
    sizes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    text: Optional[TextClause] = None

    model_config = {"frozen": True}

    # ----- builders --------------------------------------------------------

    def with_category(self, category_id: Optional[str]) -> Predicate:
        return self.model_copy(update={"category_id": category_id})

    def with_brands(self, brands: Iterable[str]) -> Predicate:
        return self.model_copy(update={"brands": tuple(brands)})

    def with_sizes(self, sizes: Iterable[str]) -> Predicate:
        return self.model_copy(update={"sizes": tuple(sizes)})

    def with_colors(self, colors: Iterable[str]) -> Predicate:
        return self.model_copy(update={"colors": tuple(colors)})

    def with_price(self, min_price: Optional[float], max_price: Optional[float]) -> Predicate:
        return self.model_copy(update={"min_price": min_price, "max_price": max_price})

    def with_min_rating(self, min_rating: Optional[float]) -> Predicate:
        return self.model_copy(update={"min_rating": min_rating})

    def with_text(self, query: Optional[str], category_ids: Iterable[str] = ()) -> Predicate:
        text = TextClause(query=query, category_ids=tuple(category_ids)) if query else None
        return self.model_copy(update={"text": text})

    def without(self, dimension: Dimension) -> Predicate:
        return self.model_copy(update=_CLEARED[dimension])

    # ----- inspection ------------------------------------------------------

    def is_active(self, dimension: Dimension) -> bool:
        return self != self.without(dimension)

    def active_dimensions(self) -> List[Dimension]:
        return [d for d in Dimension if self.is_active(d)]

    # ----- rendering -------------------------------------------------------

    def clause(self, dimension: Dimension) -> Optional[Dict[str, Any]]:
        """MQL for a single structural dimension, or None when it is not filtered."""
        if dimension is Dimension.CATEGORY:
            return {"category": ObjectId(self.category_id)} if self.category_id else None
        if dimension is Dimension.BRAND:
            return _any_of("brand", self.brands) if self.brands else None
        if dimension is Dimension.SIZE:
            return _any_of("variants.size", self.sizes) if self.sizes else None
        if dimension is Dimension.COLOR:
            return _any_of("variants.color", self.colors) if self.colors else None
        if dimension is Dimension.PRICE:
            return _range("price", self.min_price, self.max_price)
        if dimension is Dimension.RATING:
            return _range("rating", self.min_rating, None)
        raise ValueError(f"{dimension.value} is not a structural dimension")

    def to_mql(self) -> Dict[str, Any]:
        """Structural filter (everything except text). Field paths never collide, so clauses merge flat."""
        mql: Dict[str, Any] = {}
        for dimension in STRUCTURAL_DIMENSIONS:
            c = self.clause(dimension)
            if c:
                mql.update(c)
        return mql
