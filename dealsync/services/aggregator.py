# dealsync/services/aggregator.py

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from dealsync.core.errors import MarketplaceError
from dealsync.core.logging import get_logger
from dealsync.schemas.listing import ItemListing
from dealsync.schemas.rule import split_keywords
from dealsync.services.marketplace import MarketplaceSearchClient

logger = get_logger(__name__)


@dataclass
class KeywordError:
    keyword: str
    kind: str
    message: str


@dataclass
class AggregationResult:
    listings: List[ItemListing] = field(default_factory=list)
    per_keyword_counts: Dict[str, int] = field(default_factory=dict)
    errors: List[KeywordError] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.per_keyword_counts) + len(self.errors)

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and not self.per_keyword_counts


class SearchAggregator:
    def __init__(
        self,
        client: MarketplaceSearchClient,
        delay_seconds: float = 0.5,
        limit: int = 100,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.delay_seconds = delay_seconds
        self.limit = limit
        self._sleep = sleep

    def run(self, rule) -> AggregationResult:
        """
        Search every keyword of ``rule`` and merge the results by item id.
        A failing keyword is logged and skipped; the others still run.
        """
        result = AggregationResult()
        merged: Dict[str, ItemListing] = {}
        keywords = split_keywords(rule.keywords)
        category_ids: Optional[List[str]] = getattr(rule, "category_ids", None)

        for idx, keyword in enumerate(keywords, start=1):
            if idx > 1 and self.delay_seconds > 0:
                self._sleep(self.delay_seconds)

            try:
                items = list(
                    self.client.search(
                        keyword,
                        min_price=rule.min_price or 0,
                        max_price=rule.max_price,
                        min_discount=rule.min_discount or 0,
                        limit=self.limit,
                        category_ids=category_ids,
                    )
                )
            except MarketplaceError as e:
                logger.warning("[%d/%d] search %r failed (%s): %s", idx, len(keywords), keyword, e.kind, e)
                result.errors.append(KeywordError(keyword, e.kind, str(e)))
                continue
            except Exception as e:
                logger.exception("[%d/%d] search %r failed unexpectedly", idx, len(keywords), keyword)
                result.errors.append(KeywordError(keyword, MarketplaceError.TRANSIENT, str(e)))
                continue

            result.per_keyword_counts[keyword] = len(items)
            for item in items:
                merged.setdefault(item.item_id, item)
            logger.info("[%d/%d] %r: %d items", idx, len(keywords), keyword, len(items))

        result.listings = list(merged.values())
        logger.info(
            "Rule %s: %d unique items from %d keywords (%d failed)",
            getattr(rule, "id", "?"),
            len(result.listings),
            len(keywords),
            len(result.errors),
        )
        return result
