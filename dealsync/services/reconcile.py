# dealsync/services/reconcile.py
"""
Reconciliation of one rule execution's listings against the deal catalog.

For each listing: insert it when new and within the rule's bounds, refresh it
when known and still within bounds, deactivate it when known and no longer
within bounds. Then deactivate the rule's own deals that were not seen this
time and have not been confirmed for ``stale_after``. Rows are never deleted.

Every item is written in its own short transaction; an item that fails becomes an
``ItemError`` in the outcome and the pass continues.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from dealsync.core.db import utc_now
from dealsync.core.logging import get_logger
from dealsync.models.deal import Deal
from dealsync.schemas.deal import DealPatch
from dealsync.schemas.listing import ItemListing
from dealsync.services import deal_store
from dealsync.services.price_utils import listing_satisfies, prices_differ

logger = get_logger(__name__)

ADDED = "added"
UPDATED = "updated"
REFRESHED = "refreshed"
REMOVED = "removed"
SKIPPED = "skipped"


@dataclass
class ItemError:
    item_id: str
    action: str
    message: str


@dataclass
class ReconciliationOutcome:
    added: int = 0
    updated: int = 0
    removed: int = 0
    errors: List[ItemError] = field(default_factory=list)

    def count(self, decision: str) -> None:
        if decision == ADDED:
            self.added += 1
        elif decision == UPDATED:
            self.updated += 1
        elif decision == REMOVED:
            self.removed += 1


class ReconciliationEngine:
    def __init__(
        self,
        session_factory: sessionmaker,
        affiliate_url: Callable[[ItemListing], str],
        stale_after: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self._affiliate_url = affiliate_url
        self.stale_after = stale_after
        self._clock = clock

    def reconcile(self, rule, listings: List[ItemListing], sweep: bool = True) -> ReconciliationOutcome:
        outcome = ReconciliationOutcome()
        found: Set[str] = {item.item_id for item in listings}
        seen: Set[str] = set()

        for listing in listings:
            if listing.item_id in seen:
                continue
            seen.add(listing.item_id)

            try:
                decision = self._apply(rule, listing)
            except Exception as e:
                logger.warning("Rule %s: could not save %s: %s", rule.id, listing.item_id, e)
                outcome.errors.append(ItemError(listing.item_id, "save", str(e)))
                continue
            outcome.count(decision)

        if sweep:
            self._sweep_unseen(rule, found, outcome)
        else:
            logger.info("Rule %s: sweep skipped (no search succeeded)", rule.id)

        logger.info(
            "Rule %s reconciled: %d added, %d updated, %d removed, %d errors",
            rule.id,
            outcome.added,
            outcome.updated,
            outcome.removed,
            len(outcome.errors),
        )
        return outcome

    # ---------- per item ----------

    def _apply(self, rule, listing: ItemListing) -> str:
        try:
            with self._session_factory() as db:
                return self._decide(db, rule, listing)
        except IntegrityError:
            # another rule inserted the same item first; take the update path
            logger.info("Item %s inserted concurrently, retrying as update", listing.item_id)
            with self._session_factory() as db:
                return self._decide(db, rule, listing)

    def _decide(self, db: Session, rule, listing: ItemListing) -> str:
        now = self._clock()
        existing = deal_store.find_by_marketplace_id(db, listing.item_id)
        qualifies = listing_satisfies(rule, listing)

        if existing is None:
            if not qualifies:
                return SKIPPED
            category_id = deal_store.get_or_create_category(db, listing.category_name, listing.category_id)
            deal_store.insert(db, self._new_deal(rule, listing, category_id), now=now)
            return ADDED

        if not qualifies:
            if deal_store.deactivate(db, existing.id, now=now):
                return REMOVED
            return SKIPPED

        changed = prices_differ(existing.current_price, listing.current_price) or prices_differ(
            existing.discount_percent, listing.discount_percent
        )
        category_id = deal_store.get_or_create_category(db, listing.category_name, listing.category_id)
        deal_store.update(db, existing.id, self._patch(rule, listing, category_id), now=now)
        return UPDATED if changed else REFRESHED

    def _new_deal(self, rule, listing: ItemListing, category_id: Optional[int]) -> Deal:
        return Deal(
            marketplace_item_id=listing.item_id,
            title=listing.title,
            image_url=listing.image_url,
            original_price=listing.original_price,
            current_price=listing.current_price,
            discount_percent=listing.discount_percent,
            currency=listing.currency,
            condition=listing.condition or "New",
            affiliate_url=self._affiliate_url(listing),
            category_id=category_id,
            rule_id=rule.id,
        )

    def _patch(self, rule, listing: ItemListing, category_id: Optional[int]) -> DealPatch:
        return DealPatch(
            title=listing.title,
            image_url=listing.image_url,
            original_price=listing.original_price,
            current_price=listing.current_price,
            discount_percent=listing.discount_percent,
            currency=listing.currency,
            condition=listing.condition or "New",
            affiliate_url=self._affiliate_url(listing),
            category_id=category_id,
            rule_id=rule.id,
            is_active=True,
        )

    # ---------- sweep ----------

    def _sweep_unseen(self, rule, found: Set[str], outcome: ReconciliationOutcome) -> None:
        now = self._clock()
        cutoff = now - self.stale_after

        with self._session_factory() as db:
            candidates = [
                (deal.id, deal.marketplace_item_id)
                for deal in deal_store.list_active_older_than(db, cutoff, rule_id=rule.id)
                if deal.marketplace_item_id not in found
            ]

        for deal_id, item_id in candidates:
            try:
                with self._session_factory() as db:
                    if deal_store.deactivate(db, deal_id, now=now):
                        outcome.removed += 1
            except SQLAlchemyError as e:
                logger.warning("Rule %s: could not deactivate %s: %s", rule.id, item_id, e)
                outcome.errors.append(ItemError(item_id, "deactivate", str(e)))
