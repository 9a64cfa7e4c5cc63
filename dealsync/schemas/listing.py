# dealsync/schemas/listing.py
from typing import Optional

from pydantic import BaseModel


class ItemListing(BaseModel):
    """One normalized marketplace search result. Lives for a single execution."""

    item_id: str
    title: str
    image_url: Optional[str] = None
    original_price: Optional[float] = None
    current_price: float
    discount_percent: int = 0
    currency: str = "USD"
    condition: Optional[str] = None
    item_url: str = ""
    category_id: Optional[str] = None
    category_name: Optional[str] = None
