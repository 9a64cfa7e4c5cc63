"""Tests for dealsync.services.rule_store and the rule schemas."""

import pytest
from pydantic import ValidationError

from dealsync.core.errors import RuleNotFoundError
from dealsync.schemas.rule import RuleCreate, RulePatch
from dealsync.services import rule_store


class TestRuleSchemas:
    def test_defaults(self):
        rule = RuleCreate(name="bags", keywords="gucci,prada")
        assert rule.keywords == ["gucci", "prada"]
        assert rule.min_discount == 30
        assert rule.schedule_cron == "0 0 * * *"

    def test_discount_must_be_a_percentage(self):
        with pytest.raises(ValidationError):
            RuleCreate(name="x", min_discount=120)

    def test_patch_drops_nulls_except_nullable_columns(self):
        patch = RulePatch(name=None, max_price=None, min_discount=40)
        assert patch.changes() == {"max_price": None, "min_discount": 40}

    def test_patch_checks_merged_bounds(self):
        with pytest.raises(ValueError):
            RulePatch(max_price=50).check_against(min_price=100, max_price=1000)
        RulePatch(max_price=None).check_against(min_price=100, max_price=50)


class TestRuleStore:
    def test_update_and_set_last_run(self, db, make_rule):
        rule = make_rule()
        updated = rule_store.update_rule(db, rule.id, RulePatch(keywords="omega, tudor"))
        assert updated.keywords == ["omega", "tudor"]
        assert updated.last_run is None

        assert rule_store.set_last_run(db, rule.id)
        db.refresh(updated)
        assert updated.last_run is not None

    def test_invalid_patch_leaves_row_untouched(self, db, make_rule):
        rule = make_rule(max_price=1000)
        with pytest.raises(ValueError):
            rule_store.update_rule(db, rule.id, RulePatch(min_price=2000))
        db.expire_all()
        assert rule_store.get_rule(db, rule.id).min_price == 0

    def test_missing_rule(self, db):
        with pytest.raises(RuleNotFoundError):
            rule_store.update_rule(db, 123, RulePatch(name="x"))
        assert rule_store.set_last_run(db, 123) is False

    def test_active_rules(self, db, make_rule):
        on = make_rule(name="on")
        make_rule(name="off", is_active=False)
        assert [r.id for r in rule_store.list_active_rules(db)] == [on.id]
