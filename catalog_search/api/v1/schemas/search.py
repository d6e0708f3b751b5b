# catalog_search/api/v1/schemas/search.py
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from catalog_search.domain.models.search import Facets, Pagination


class SearchPageOut(BaseModel):
    data: List[Dict[str, Any]]
    pagination: Pagination


class SearchEnvelope(BaseModel):
    success: bool = True
    data: SearchPageOut


class FacetsEnvelope(BaseModel):
    success: bool = True
    data: Facets


class BackfillPreviewItem(BaseModel):
    productId: str
    views: int
    adds: int
    purchases: int
    popularity: float


class BackfillOut(BaseModel):
    updated: int
    previewCount: int
    preview: List[BackfillPreviewItem] = Field(default_factory=list)


class BackfillEnvelope(BaseModel):
    success: bool = True
    message: str = "Backfill completed"
    data: BackfillOut


class MigrateOut(BaseModel):
    modified: int
    matched: int


class MigrateEnvelope(BaseModel):
    success: bool = True
    message: str = "Analytics fields migration completed"
    data: MigrateOut


class ProductAnalyticsEnvelope(BaseModel):
    success: bool = True
    data: Dict[str, Any]
