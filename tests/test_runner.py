"""Tests for dealsync.services.runner."""

import threading
from datetime import timedelta

import pytest

from dealsync.core.errors import MarketplaceError, RuleBusyError, RuleNotFoundError
from dealsync.models.deal import Deal
from dealsync.services import deal_store, rule_store
from dealsync.services.execution_log import STATUS_ERROR, STATUS_SUCCESS, list_logs

from conftest import make_listing


def _logs(db, rule_id):
    db.expire_all()
    logs, _ = list_logs(db, rule_id=rule_id)
    return logs


class TestRunRule:
    def test_partial_keyword_failure_still_succeeds(self, runtime, fake_client, make_rule, db):
        rule = make_rule(keywords=["gucci", "rolex"])
        fake_client.errors["gucci"] = MarketplaceError("429 Too Many Requests", kind=MarketplaceError.RATE_LIMITED)
        fake_client.results["rolex"] = [make_listing("R1"), make_listing("R2", price=600)]

        result = runtime.runner.run_rule(rule.id)

        assert result.success
        assert (result.found, result.added) == (2, 2)
        logs = _logs(db, rule.id)
        assert len(logs) == 1
        assert logs[0].status == STATUS_SUCCESS
        assert logs[0].items_found == 2
        assert logs[0].items_added == 2

    def test_three_runs_add_update_evict(self, runtime, fake_client, make_rule, db, clock):
        rule = make_rule()

        fake_client.results["luxury watch"] = [make_listing("E1", price=700, original=1000)]
        assert runtime.runner.run_rule(rule.id).added == 1

        fake_client.results["luxury watch"] = [make_listing("E1", price=650, original=1000)]
        assert runtime.runner.run_rule(rule.id).updated == 1

        clock.advance(hours=25)
        fake_client.results["luxury watch"] = []
        third = runtime.runner.run_rule(rule.id)
        assert third.removed == 1

        db.expire_all()
        deal = deal_store.find_by_marketplace_id(db, "E1")
        assert not deal.is_active
        assert deal.current_price == 650
        assert [log.items_removed for log in _logs(db, rule.id)] == [1, 0, 0]

    def test_all_keywords_failing_is_an_error_and_evicts_nothing(self, runtime, fake_client, make_rule, db, clock):
        rule = make_rule(keywords=["a", "b"])
        fake_client.results["a"] = [make_listing("E1")]
        runtime.runner.run_rule(rule.id)

        clock.advance(days=3)
        fake_client.results.clear()
        fake_client.errors["a"] = MarketplaceError("timed out")
        fake_client.errors["b"] = MarketplaceError("timed out")
        result = runtime.runner.run_rule(rule.id)

        assert not result.success
        assert "All 2 keyword searches failed" in result.error
        assert result.removed == 0
        db.expire_all()
        assert deal_store.find_by_marketplace_id(db, "E1").is_active
        assert _logs(db, rule.id)[0].status == STATUS_ERROR

    def test_last_run_advances_on_error(self, runtime, make_rule, db, monkeypatch):
        rule = make_rule()

        def unreachable(*args, **kwargs):
            raise RuntimeError("store unreachable")

        monkeypatch.setattr(runtime.runner.engine, "reconcile", unreachable)
        result = runtime.runner.run_rule(rule.id)

        assert result.error == "store unreachable"
        db.expire_all()
        assert rule_store.get_rule(db, rule.id).last_run is not None
        log = _logs(db, rule.id)[0]
        assert log.status == STATUS_ERROR
        assert log.error_message == "store unreachable"

    def test_missing_credentials_is_recorded(self, runtime, fake_client, make_rule, db):
        rule = make_rule()
        fake_client.configured = False

        result = runtime.runner.run_rule(rule.id)

        assert not result.success
        assert "EBAY_APP_ID" in result.error
        assert fake_client.calls == []
        assert _logs(db, rule.id)[0].status == STATUS_ERROR

    def test_rule_without_keywords_is_a_quiet_success(self, runtime, fake_client, make_rule, db, clock):
        rule = make_rule(keywords=[])
        db.add(Deal(
            marketplace_item_id="KEEP",
            title="keep",
            current_price=100,
            discount_percent=50,
            affiliate_url="https://example.com",
            rule_id=rule.id,
            updated_at=clock() - timedelta(days=2),
        ))
        db.commit()

        result = runtime.runner.run_rule(rule.id)

        assert result.success
        assert (result.found, result.added, result.removed) == (0, 0, 0)
        assert fake_client.calls == []
        db.expire_all()
        assert deal_store.find_by_marketplace_id(db, "KEEP").is_active

    def test_unknown_rule(self, runtime):
        with pytest.raises(RuleNotFoundError):
            runtime.runner.run_rule(9999)


class TestRunGuard:
    def test_second_run_of_a_busy_rule_is_refused(self, runtime, fake_client, make_rule):
        rule = make_rule()
        started = threading.Event()
        release = threading.Event()

        def blocking_search(keyword, **kwargs):
            started.set()
            release.wait(timeout=5)
            return iter([make_listing("E1")])

        fake_client.search = blocking_search
        results = []
        worker = threading.Thread(target=lambda: results.append(runtime.runner.run_rule(rule.id)))
        worker.start()
        try:
            assert started.wait(timeout=5)
            assert runtime.runner.is_running(rule.id)
            with pytest.raises(RuleBusyError):
                runtime.runner.run_rule(rule.id)
        finally:
            release.set()
            worker.join(timeout=5)

        assert results[0].added == 1
        assert not runtime.runner.is_running(rule.id)

    def test_different_rules_do_not_block_each_other(self, runtime, make_rule):
        a = make_rule(name="a")
        b = make_rule(name="b")
        guard = runtime.runner._guard(a.id)
        guard.acquire()
        try:
            assert runtime.runner.run_rule(b.id).success
        finally:
            guard.release()
