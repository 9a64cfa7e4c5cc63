# dealsync/services/deal_store.py
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from dealsync.core.db import utc_now
from dealsync.models.category import Category
from dealsync.models.deal import Deal
from dealsync.schemas.deal import DealPatch


def find_by_marketplace_id(db: Session, marketplace_item_id: str) -> Optional[Deal]:
    return (
        db.query(Deal)
        .filter(Deal.marketplace_item_id == marketplace_item_id)
        .first()
    )


def get_deal(db: Session, deal_id: int) -> Optional[Deal]:
    return db.get(Deal, deal_id)


def insert(db: Session, deal: Deal, now: Optional[datetime] = None) -> Deal:
    now = now or utc_now()
    deal.is_active = True
    deal.created_at = now
    deal.updated_at = now
    db.add(deal)
    db.commit()
    db.refresh(deal)
    return deal


def update(db: Session, deal_id: int, fields: DealPatch, now: Optional[datetime] = None) -> Optional[Deal]:
    """Write the set fields of ``fields`` and stamp updated_at."""
    deal = db.get(Deal, deal_id)
    if deal is None:
        return None

    for name, value in fields.model_dump(exclude_unset=True).items():
        setattr(deal, name, value)
    deal.updated_at = now or utc_now()

    db.add(deal)
    db.commit()
    db.refresh(deal)
    return deal


def deactivate(db: Session, deal_id: int, now: Optional[datetime] = None) -> bool:
    """
    Retire a deal. The row is kept; updated_at records when it was retired so
    recent deactivations can be restored.
    """
    deal = db.get(Deal, deal_id)
    if deal is None or not deal.is_active:
        return False
    deal.is_active = False
    deal.updated_at = now or utc_now()
    db.add(deal)
    db.commit()
    return True


def activate(db: Session, deal_id: int, now: Optional[datetime] = None) -> Optional[Deal]:
    deal = db.get(Deal, deal_id)
    if deal is None:
        return None
    if not deal.is_active:
        deal.is_active = True
        deal.updated_at = now or utc_now()
        db.add(deal)
        db.commit()
        db.refresh(deal)
    return deal


def list_active_older_than(
    db: Session,
    cutoff: datetime,
    rule_id: Optional[int] = None,
) -> List[Deal]:
    q = db.query(Deal).filter(Deal.is_active.is_(True), Deal.updated_at < cutoff)
    if rule_id is not None:
        q = q.filter(Deal.rule_id == rule_id)
    return q.order_by(Deal.updated_at).all()


def restore_recent(db: Session, hours: int, now: Optional[datetime] = None) -> int:
    """Reactivate deals deactivated within the last ``hours``."""
    now = now or utc_now()
    cutoff = now - timedelta(hours=hours)
    count = (
        db.query(Deal)
        .filter(Deal.is_active.is_(False), Deal.updated_at > cutoff)
        .update({Deal.is_active: True, Deal.updated_at: now}, synchronize_session=False)
    )
    db.commit()
    return count


def list_deals(
    db: Session,
    active: Optional[bool] = True,
    page: int = 1,
    limit: int = 20,
    min_discount: float = 0,
    search: Optional[str] = None,
) -> Tuple[List[Deal], int]:
    q = db.query(Deal)
    if active is not None:
        q = q.filter(Deal.is_active.is_(active))
    if min_discount > 0:
        q = q.filter(Deal.discount_percent >= min_discount)
    if search:
        q = q.filter(Deal.title.ilike(f"%{search}%"))

    total = q.count()
    deals = (
        q.order_by(Deal.discount_percent.desc(), Deal.updated_at.desc(), Deal.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return deals, total


def get_or_create_category(
    db: Session,
    name: Optional[str],
    marketplace_category_id: Optional[str] = None,
) -> Optional[int]:
    """Resolve a marketplace category to a local id, creating it on first sight."""
    if not name:
        return None

    q = db.query(Category).filter(Category.name == name)
    if marketplace_category_id:
        q = db.query(Category).filter(
            (Category.name == name)
            | (Category.marketplace_category_id == marketplace_category_id)
        )
    existing = q.first()
    if existing is not None:
        return existing.id

    category = Category(name=name, marketplace_category_id=marketplace_category_id or None)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category.id
