"""Shared fixtures for the dealsync test suite."""

import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

# Ensure the repo root is on the path so "import dealsync" / "import main" work.
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

# Console logging only; keep the test run from writing logs/ into the repo.
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from dealsync.core.config import Settings  # noqa: E402
from dealsync.core.db import init_db, make_engine, make_session_factory  # noqa: E402
from dealsync.schemas.listing import ItemListing  # noqa: E402
from dealsync.schemas.rule import RuleCreate, RuleOut  # noqa: E402
from dealsync.services import rule_store  # noqa: E402
from dealsync.services.price_utils import discount_percent  # noqa: E402
from dealsync.services.runtime import build_runtime  # noqa: E402


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class Clock:
    """Settable stand-in for utc_now."""

    def __init__(self, start: datetime = datetime(2026, 1, 10, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeMarketplace:
    """In-memory MarketplaceSearchClient: keyword -> listings or exception."""

    def __init__(self, results=None, errors=None, configured=True):
        self.results = dict(results or {})
        self.errors = dict(errors or {})
        self.configured = configured
        self.calls = []

    def search(self, keyword, min_price=0, max_price=None, min_discount=0, limit=100, category_ids=None):
        self.calls.append(keyword)
        if keyword in self.errors:
            raise self.errors[keyword]
        return iter(list(self.results.get(keyword, [])))

    def affiliate_url(self, listing):
        return f"{listing.item_url}?campid=test"

    def is_configured(self):
        return self.configured


def make_listing(item_id="E1", price=700.0, original=1000.0, title=None, **extra) -> ItemListing:
    return ItemListing(
        item_id=item_id,
        title=title or f"Listing {item_id}",
        image_url=f"https://img.example/{item_id}.jpg",
        original_price=original,
        current_price=price,
        discount_percent=extra.pop("discount", discount_percent(original, price)),
        currency="USD",
        condition="New",
        item_url=f"https://www.ebay.com/itm/{item_id}",
        category_id=extra.pop("category_id", "31387"),
        category_name=extra.pop("category_name", "Wristwatches"),
        **extra,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def fake_client():
    return FakeMarketplace()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ebay_app_id="app",
        ebay_cert_id="cert",
        keyword_delay_seconds=0,
        log_dir=None,
    )


@pytest.fixture
def make_rule(session_factory):
    def _make(**overrides) -> RuleOut:
        data = {
            "name": "Luxury watches",
            "keywords": ["luxury watch"],
            "min_price": 0,
            "max_price": 1000,
            "min_discount": 30,
            "schedule_cron": "0 * * * *",
        }
        data.update(overrides)
        with session_factory() as db:
            return RuleOut.model_validate(rule_store.create_rule(db, RuleCreate(**data)))

    return _make


@pytest.fixture
def runtime(session_factory, settings, fake_client, clock):
    rt = build_runtime(session_factory, settings=settings, client=fake_client)
    rt.runner.engine._clock = clock
    rt.sweeper._clock = clock
    yield rt
    rt.scheduler.shutdown()
