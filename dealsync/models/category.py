# dealsync/models/category.py

from sqlalchemy import Column, DateTime, Integer, String

from dealsync.core.db import Base, utc_now


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    marketplace_category_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
