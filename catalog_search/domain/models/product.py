from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

# Mongo ObjectIds are exposed as plain strings
ObjectIdStr = Annotated[str, BeforeValidator(lambda v: str(v))]
# Counters may be absent or null on products that were never migrated
Counter = Annotated[int, BeforeValidator(lambda v: int(v or 0))]
Score = Annotated[float, BeforeValidator(lambda v: float(v or 0))]

_DOC_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class EventType(str, Enum):
    VIEW = "view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"


class Category(BaseModel):
    id: ObjectIdStr = Field(alias="_id")
    name: str
    slug: str
    model_config = _DOC_CONFIG


class Variant(BaseModel):
    size: Optional[str] = None
    color: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    inventory: Counter = 0
    model_config = _DOC_CONFIG


class Product(BaseModel):
    id: ObjectIdStr = Field(alias="_id")
    name: str
    brand: Optional[str] = None
    description: Optional[str] = None
    price: float = 0.0
    # category id, or the populated category once joined
    category: Optional[Union[Category, ObjectIdStr]] = Field(None, union_mode="left_to_right")
    variants: List[Variant] = []
    images: List[str] = []
    inventory: Counter = 0
    rating: Score = 0.0
    review_count: Counter = Field(0, alias="reviewCount")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    # stored counters; popularity_score is a cache hint only
    views: Counter = 0
    add_to_cart_count: Counter = Field(0, alias="addToCartCount")
    purchase_count: Counter = Field(0, alias="purchaseCount")
    popularity_score: Score = Field(0.0, alias="popularityScore")

    model_config = _DOC_CONFIG


class ProductEvent(BaseModel):
    product_id: ObjectIdStr = Field(alias="productId")
    type: EventType
    quantity: Optional[int] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    model_config = _DOC_CONFIG


class EventTotals(BaseModel):
    """Live aggregation of a product's event log, quantities summed per type."""
    views: int = 0
    adds: int = 0
    purchases: int = 0
    model_config = {"frozen": True}


class EffectiveCounters(BaseModel):
    views: int = 0
    adds: int = 0
    purchases: int = 0
    popularity: float = Field(0.0, ge=0)
    model_config = {"frozen": True}
