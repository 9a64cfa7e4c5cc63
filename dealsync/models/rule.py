# dealsync/models/rule.py

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.orm import relationship

from dealsync.core.db import Base, utc_now


class Rule(Base):
    __tablename__ = "rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    keywords = Column(JSON, nullable=False, default=list)
    category_ids = Column(JSON, nullable=True)
    min_price = Column(Float, nullable=False, default=0.0)
    max_price = Column(Float, nullable=True)
    min_discount = Column(Float, nullable=False, default=30.0)
    schedule_cron = Column(String, nullable=False, default="0 0 * * *")
    is_active = Column(Boolean, nullable=False, default=True)
    last_run = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    logs = relationship(
        "ExecutionLog",
        back_populates="rule",
        cascade="all, delete-orphan",
    )
