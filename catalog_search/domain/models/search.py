from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from catalog_search.domain.models.product import Product


class SortKey(str, Enum):
    RELEVANCE = "relevance"
    PRICE = "price"
    RATING = "rating"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    NAME = "name"
    POPULARITY = "popularity"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SearchRequest(BaseModel):
    """Validated search parameters. Produced only by the query normalizer."""
    q: Optional[str] = None
    category: Optional[str] = None
    brands: Tuple[str, ...] = ()
    sizes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    sort: SortKey = SortKey.RELEVANCE
    order: SortOrder = SortOrder.DESC
    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1)

    model_config = {"frozen": True}

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    hasNext: bool
    hasPrev: bool


class SearchPage(BaseModel):
    data: List[Product]
    pagination: Pagination


class FacetValue(BaseModel):
    value: str
    label: str
    count: int


class PriceRange(BaseModel):
    min: float = 0
    max: float = 0


class Facets(BaseModel):
    categories: List[FacetValue] = []
    brands: List[FacetValue] = []
    sizes: List[FacetValue] = []
    colors: List[FacetValue] = []
    priceRange: PriceRange = PriceRange()
    ratings: Dict[str, int] = {}
