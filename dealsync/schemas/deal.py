# dealsync/schemas/deal.py
import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DealPatch(BaseModel):
    """Mutable deal fields. Anything else on the row is owned by the store."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    image_url: Optional[str] = None
    original_price: Optional[float] = Field(None, ge=0)
    current_price: Optional[float] = Field(None, ge=0)
    discount_percent: Optional[float] = Field(None, ge=0, le=100)
    currency: Optional[str] = None
    condition: Optional[str] = None
    affiliate_url: Optional[str] = None
    category_id: Optional[int] = None
    rule_id: Optional[int] = None
    is_active: Optional[bool] = None


class DealOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    marketplace_item_id: str
    title: str
    image_url: Optional[str] = None
    original_price: Optional[float] = None
    current_price: float
    discount_percent: float
    currency: str
    condition: Optional[str] = None
    affiliate_url: str
    category_id: Optional[int] = None
    rule_id: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class DealPage(BaseModel):
    deals: List[DealOut]
    pagination: Pagination


class RestoreRequest(BaseModel):
    hours: int = Field(24, ge=1, le=24 * 30)


class CountResponse(BaseModel):
    success: bool
    count: int
    message: str
