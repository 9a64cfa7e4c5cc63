"""Tests for dealsync.services.sweeper."""

from datetime import timedelta

from dealsync.models.deal import Deal
from dealsync.services import deal_store
from dealsync.services.sweeper import StalenessSweeper


def _add(db, item_id, updated_at, active=True, rule_id=None):
    deal = Deal(
        marketplace_item_id=item_id,
        title=item_id,
        current_price=100,
        original_price=200,
        discount_percent=50,
        affiliate_url=f"https://www.ebay.com/itm/{item_id}",
        rule_id=rule_id,
    )
    deal_store.insert(db, deal, now=updated_at)
    if not active:
        deal_store.deactivate(db, deal.id, now=updated_at)
    return deal.id


class TestStalenessSweeper:
    def test_retires_only_deals_past_max_age(self, session_factory, db, clock):
        _add(db, "OLD", clock() - timedelta(days=8))
        _add(db, "FRESH", clock() - timedelta(days=6))

        count = StalenessSweeper(session_factory, max_age=timedelta(days=7), clock=clock).sweep()

        assert count == 1
        db.expire_all()
        assert not deal_store.find_by_marketplace_id(db, "OLD").is_active
        assert deal_store.find_by_marketplace_id(db, "FRESH").is_active

    def test_covers_orphaned_deals(self, session_factory, db, clock):
        _add(db, "ORPHAN", clock() - timedelta(days=10), rule_id=None)
        assert StalenessSweeper(session_factory, clock=clock).sweep() == 1

    def test_already_inactive_deals_are_not_counted(self, session_factory, db, clock):
        _add(db, "GONE", clock() - timedelta(days=30), active=False)
        assert StalenessSweeper(session_factory, clock=clock).sweep() == 0

    def test_max_age_override(self, session_factory, db, clock):
        _add(db, "A", clock() - timedelta(hours=2))
        sweeper = StalenessSweeper(session_factory, clock=clock)
        assert sweeper.sweep() == 0
        assert sweeper.sweep(max_age=timedelta(hours=1)) == 1

    def test_retired_deals_can_be_restored(self, session_factory, db, clock):
        _add(db, "A", clock() - timedelta(days=9))
        StalenessSweeper(session_factory, clock=clock).sweep()

        restored = deal_store.restore_recent(db, hours=1, now=clock() + timedelta(minutes=5))
        assert restored == 1
        db.expire_all()
        assert deal_store.find_by_marketplace_id(db, "A").is_active
