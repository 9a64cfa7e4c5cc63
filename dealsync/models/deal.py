# dealsync/models/deal.py

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from dealsync.core.db import Base, utc_now


class Deal(Base):
    __tablename__ = "deals"
    __table_args__ = (
        # staleness sweeps scan active rows by age
        Index("ix_deals_active_updated_at", "is_active", "updated_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    marketplace_item_id = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    original_price = Column(Float, nullable=True)
    current_price = Column(Float, nullable=False)
    discount_percent = Column(Float, nullable=False, default=0.0)
    currency = Column(String, nullable=False, default="USD")
    condition = Column(String, nullable=True)
    affiliate_url = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    rule_id = Column(Integer, ForeignKey("rules.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    category = relationship("Category")
