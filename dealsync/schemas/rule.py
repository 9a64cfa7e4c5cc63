# dealsync/schemas/rule.py
from datetime import datetime
from typing import ClassVar, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def split_keywords(value: Union[str, List[str], None]) -> List[str]:
    """
    Accepts a list or a comma-separated string.
    Returns trimmed, non-empty keywords with duplicates removed (order kept).
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    seen = set()
    out: List[str] = []
    for kw in value:
        kw = (kw or "").strip()
        if kw and kw.lower() not in seen:
            seen.add(kw.lower())
            out.append(kw)
    return out


def _check_bounds(min_price: Optional[float], max_price: Optional[float]) -> None:
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValueError("min_price must be less than or equal to max_price")


class RuleBase(BaseModel):
    name: str = Field(..., min_length=1)
    keywords: List[str] = Field(default_factory=list)
    category_ids: Optional[List[str]] = None
    min_price: float = Field(0.0, ge=0)
    max_price: Optional[float] = Field(10000.0, ge=0)
    min_discount: float = Field(30.0, ge=0, le=100)
    schedule_cron: str = "0 0 * * *"
    is_active: bool = True

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords(cls, v):
        return split_keywords(v)

    @field_validator("category_ids", mode="before")
    @classmethod
    def _category_ids(cls, v):
        ids = split_keywords(v)
        return ids or None


class RuleCreate(RuleBase):
    @model_validator(mode="after")
    def _bounds(self):
        _check_bounds(self.min_price, self.max_price)
        return self


class RulePatch(BaseModel):
    """
    The only fields an operator may change on an existing rule.
    Unset fields are left alone; explicit nulls are only honoured where
    the column is nullable (max_price, category_ids).
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    keywords: Optional[List[str]] = None
    category_ids: Optional[List[str]] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    min_discount: Optional[float] = Field(None, ge=0, le=100)
    schedule_cron: Optional[str] = None
    is_active: Optional[bool] = None

    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"max_price", "category_ids"})

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords(cls, v):
        return None if v is None else split_keywords(v)

    @field_validator("category_ids", mode="before")
    @classmethod
    def _category_ids(cls, v):
        return split_keywords(v) or None

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k in self.NULLABLE}

    def check_against(self, min_price: float, max_price: Optional[float]) -> None:
        """Validate the merged bounds before anything is written."""
        changes = self.changes()
        _check_bounds(
            changes.get("min_price", min_price),
            changes["max_price"] if "max_price" in changes else max_price,
        )


class RuleOut(RuleBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    last_run: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_inert(self) -> bool:
        return not self.keywords
