# dealsync/services/marketplace.py
"""
eBay Browse API search client.

``EbayBrowseClient.search`` returns normalized ``ItemListing`` records for one
keyword. Every failure is raised as a ``MarketplaceError`` carrying a kind the
aggregator can log: ``rate_limited`` (HTTP 429), ``unauthenticated``
(401/403 or missing credentials) or ``transient`` (timeouts, transport
errors, 5xx and unreadable payloads).
"""

import threading
import time
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

import httpx

from dealsync.core.config import Settings, get_settings
from dealsync.core.errors import MarketplaceError
from dealsync.core.http import get_client
from dealsync.core.logging import get_logger
from dealsync.schemas.listing import ItemListing
from dealsync.services.price_utils import discount_percent, parse_price_loose

logger = get_logger(__name__)

BROWSE_API_URL = "https://api.ebay.com/buy/browse/v1/item_summary/search"
OAUTH_URL = "https://api.ebay.com/identity/v1/oauth2/token"
OAUTH_SCOPE = "https://api.ebay.com/oauth/api_scope"
ITEM_URL = "https://www.ebay.com/itm/{legacy_id}"

MAX_LIMIT = 200
TOKEN_REFRESH_MARGIN = 300  # seconds before expiry
AFFILIATE_PARAMS = "mkcid=1&mkrid=711-53200-19255-0&siteid=0&campid={campaign}&toolid=10001&mkevt=1"


class MarketplaceSearchClient(Protocol):
    def search(
        self,
        keyword: str,
        min_price: float = 0,
        max_price: Optional[float] = None,
        min_discount: float = 0,
        limit: int = 100,
        category_ids: Optional[Sequence[str]] = None,
    ) -> Iterator[ItemListing]:
        ...

    def affiliate_url(self, listing: ItemListing) -> str:
        ...

    def is_configured(self) -> bool:
        ...


def legacy_item_id(item_id: str) -> str:
    """Browse API ids look like ``v1|123456789|0``; the middle part is the listing number."""
    if item_id and "|" in item_id:
        parts = item_id.split("|")
        if len(parts) >= 2 and parts[1]:
            return parts[1]
    return item_id


def classify_status(status_code: int) -> str:
    if status_code == 429:
        return MarketplaceError.RATE_LIMITED
    if status_code in (401, 403):
        return MarketplaceError.UNAUTHENTICATED
    return MarketplaceError.TRANSIENT


def _error_message(resp: httpx.Response) -> str:
    try:
        errors = resp.json().get("errors") or []
        if errors and errors[0].get("message"):
            return errors[0]["message"]
    except ValueError:
        pass
    return resp.text[:200]


def parse_item_summary(item: Dict[str, Any]) -> Optional[ItemListing]:
    """
    Normalize one ``itemSummaries`` entry. Items without an id or a price are
    dropped. Without a marketing (strike-through) price the item is listed at
    its own price with no discount.
    """
    item_id = item.get("itemId")
    current = parse_price_loose((item.get("price") or {}).get("value"))
    if not item_id or current is None:
        return None

    marketing = item.get("marketingPrice") or {}
    original = parse_price_loose((marketing.get("originalPrice") or {}).get("value"))
    if original is None or original <= 0:
        original = current
        discount = 0
    else:
        raw = marketing.get("discountPercentage")
        try:
            discount = int(round(float(raw))) if raw is not None else discount_percent(original, current)
        except (TypeError, ValueError):
            discount = discount_percent(original, current)
        discount = min(max(discount, 0), 100)

    image = (item.get("image") or {}).get("imageUrl")
    if not image:
        thumbs = item.get("thumbnailImages") or []
        image = thumbs[0].get("imageUrl") if thumbs else None

    categories = item.get("categories") or []
    category = categories[0] if categories else {}

    return ItemListing(
        item_id=item_id,
        title=item.get("title") or "",
        image_url=image,
        original_price=original,
        current_price=current,
        discount_percent=discount,
        currency=(item.get("price") or {}).get("currency") or "USD",
        condition=item.get("condition") or "Unknown",
        item_url=item.get("itemWebUrl") or item.get("itemAffiliateWebUrl") or "",
        category_id=category.get("categoryId") or item.get("categoryId"),
        category_name=category.get("categoryName") or item.get("categoryPath"),
    )


class EbayBrowseClient:
    """
    Thread-safe: the OAuth token and the result cache are shared by every
    scheduler worker and guarded by one lock.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http: Optional[httpx.Client] = None,
        clock=time.monotonic,
    ):
        self.settings = settings or get_settings()
        self._http = http or get_client(timeout=self.settings.search_timeout_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self._cache: Dict[Tuple, Tuple[float, List[ItemListing]]] = {}

    def is_configured(self) -> bool:
        return self.settings.marketplace_configured

    def close(self) -> None:
        self._http.close()

    # ---------- auth ----------

    def _access_token(self) -> str:
        with self._lock:
            if self._token and self._clock() < self._token_expiry - TOKEN_REFRESH_MARGIN:
                return self._token

        if not self.is_configured():
            raise MarketplaceError(
                "eBay API credentials not configured (EBAY_APP_ID / EBAY_CERT_ID)",
                kind=MarketplaceError.UNAUTHENTICATED,
            )

        logger.info("Requesting new eBay OAuth token")
        try:
            resp = self._http.post(
                OAUTH_URL,
                auth=(self.settings.ebay_app_id, self.settings.ebay_cert_id),
                data={"grant_type": "client_credentials", "scope": OAUTH_SCOPE},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise MarketplaceError(f"OAuth request failed: {e}") from e

        if resp.status_code != 200:
            kind = classify_status(resp.status_code)
            if resp.status_code in (400, 401):
                kind = MarketplaceError.UNAUTHENTICATED
            raise MarketplaceError(
                f"OAuth error {resp.status_code}: {resp.text[:200]}",
                kind=kind,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
            token = data["access_token"]
            expires_in = float(data.get("expires_in", 7200))
        except (ValueError, KeyError) as e:
            raise MarketplaceError(f"Invalid OAuth response: {e}") from e

        with self._lock:
            self._token = token
            self._token_expiry = self._clock() + expires_in
        logger.info("Got eBay OAuth token (expires in %ss)", int(expires_in))
        return token

    # ---------- cache ----------

    def _cached(self, key: Tuple) -> Optional[List[ItemListing]]:
        ttl = self.settings.search_cache_ttl_seconds
        if ttl <= 0:
            return None
        with self._lock:
            hit = self._cache.get(key)
            if hit is None:
                return None
            stored_at, listings = hit
            if self._clock() - stored_at < ttl:
                return listings
            del self._cache[key]
        return None

    def _store(self, key: Tuple, listings: List[ItemListing]) -> None:
        if self.settings.search_cache_ttl_seconds <= 0:
            return
        now = self._clock()
        ttl = self.settings.search_cache_ttl_seconds
        with self._lock:
            for k in [k for k, (ts, _) in self._cache.items() if now - ts >= ttl]:
                del self._cache[k]
            self._cache[key] = (now, listings)

    # ---------- search ----------

    def search(
        self,
        keyword: str,
        min_price: float = 0,
        max_price: Optional[float] = None,
        min_discount: float = 0,
        limit: int = 100,
        category_ids: Optional[Sequence[str]] = None,
    ) -> Iterator[ItemListing]:
        """
        Lazily yields listings for ``keyword`` whose discount meets
        ``min_discount``. The HTTP call happens on first iteration.
        """
        key = (
            keyword,
            tuple(category_ids or ()),
            min_price,
            max_price,
            min_discount,
            limit,
        )
        listings = self._cached(key)
        if listings is not None:
            logger.debug("Cache hit for %r (%d items)", keyword, len(listings))
        else:
            listings = self._fetch(keyword, min_price, max_price, min_discount, limit, category_ids)
            self._store(key, listings)
        yield from listings

    def _fetch(
        self,
        keyword: str,
        min_price: float,
        max_price: Optional[float],
        min_discount: float,
        limit: int,
        category_ids: Optional[Sequence[str]],
    ) -> List[ItemListing]:
        token = self._access_token()

        params: Dict[str, Any] = {"q": keyword, "limit": str(min(limit, MAX_LIMIT))}
        if (min_price or 0) > 0 or max_price is not None:
            upper = "" if max_price is None else f"{max_price:g}"
            params["filter"] = f"price:[{(min_price or 0):g}..{upper}],priceCurrency:USD"
        if category_ids:
            params["category_ids"] = ",".join(category_ids)

        logger.info("eBay search %r (price %s..%s)", keyword, min_price, max_price)
        try:
            resp = self._http.get(
                BROWSE_API_URL,
                params=params,
                headers={
                    "Authorization": f"Bearer {token}",
                    "X-EBAY-C-MARKETPLACE-ID": self.settings.ebay_marketplace_id,
                },
            )
        except httpx.TimeoutException as e:
            raise MarketplaceError(f"eBay search timed out for {keyword!r}") from e
        except httpx.HTTPError as e:
            raise MarketplaceError(f"eBay search failed for {keyword!r}: {e}") from e

        if resp.status_code != 200:
            if resp.status_code == 401:
                # token revoked early; next call re-authenticates
                with self._lock:
                    self._token = None
            raise MarketplaceError(
                f"eBay API error {resp.status_code}: {_error_message(resp)}",
                kind=classify_status(resp.status_code),
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise MarketplaceError("Invalid response from eBay API") from e

        results: List[ItemListing] = []
        for raw in data.get("itemSummaries") or []:
            listing = parse_item_summary(raw)
            if listing is None:
                continue
            if listing.discount_percent >= (min_discount or 0):
                results.append(listing)

        logger.info("eBay %r: %d items passed the discount filter", keyword, len(results))
        return results

    def affiliate_url(self, listing: ItemListing) -> str:
        campaign = self.settings.ebay_campaign_id
        base = listing.item_url or ITEM_URL.format(legacy_id=legacy_item_id(listing.item_id))
        if not campaign:
            return base
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{AFFILIATE_PARAMS.format(campaign=campaign)}"
