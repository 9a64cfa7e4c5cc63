# dealsync/services/rule_store.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from dealsync.core.db import utc_now
from dealsync.core.errors import RuleNotFoundError
from dealsync.models.deal import Deal
from dealsync.models.rule import Rule
from dealsync.schemas.rule import RuleCreate, RulePatch


def list_rules(db: Session) -> List[Rule]:
    return db.query(Rule).order_by(Rule.created_at.desc(), Rule.id.desc()).all()


def list_active_rules(db: Session) -> List[Rule]:
    return db.query(Rule).filter(Rule.is_active.is_(True)).order_by(Rule.id).all()


def get_rule(db: Session, rule_id: int) -> Optional[Rule]:
    return db.get(Rule, rule_id)


def require_rule(db: Session, rule_id: int) -> Rule:
    rule = db.get(Rule, rule_id)
    if rule is None:
        raise RuleNotFoundError(rule_id)
    return rule


def create_rule(db: Session, data: RuleCreate) -> Rule:
    rule = Rule(**data.model_dump())
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def update_rule(db: Session, rule_id: int, patch: RulePatch) -> Rule:
    """
    Apply an operator patch. Merged price bounds are validated before the
    write; ValueError leaves the row untouched.
    """
    rule = require_rule(db, rule_id)
    patch.check_against(rule.min_price, rule.max_price)

    for field, value in patch.changes().items():
        setattr(rule, field, value)

    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def delete_rule(db: Session, rule_id: int) -> None:
    rule = require_rule(db, rule_id)
    # deals outlive their rule; the staleness sweep retires them
    db.query(Deal).filter(Deal.rule_id == rule_id).update(
        {Deal.rule_id: None}, synchronize_session=False
    )
    db.delete(rule)
    db.commit()


def set_last_run(db: Session, rule_id: int, timestamp: Optional[datetime] = None) -> bool:
    """Returns False when the rule has been deleted in the meantime."""
    rule = db.get(Rule, rule_id)
    if rule is None:
        return False
    rule.last_run = timestamp or utc_now()
    db.add(rule)
    db.commit()
    return True
