# dealsync/services/price_utils.py
import re
from typing import Optional

PRICE_RX = re.compile(r'(?:\$|USD|US\s?\$)?\s*([0-9][0-9,]*(?:\.\d{1,2})?)', re.I)

# prices are compared to the cent
PRICE_EPSILON = 0.005


def parse_price_loose(value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value)
    m = PRICE_RX.search(s)
    if m:
        try:
            return float(m.group(1).replace(",", ""))
        except ValueError:
            return None
    return None


def discount_percent(original_price: Optional[float], current_price: Optional[float]) -> int:
    """Whole-number discount of current vs original; 0 when there is no markdown."""
    if not original_price or current_price is None or original_price <= current_price:
        return 0
    return int(round((original_price - current_price) / original_price * 100))


def prices_differ(a: Optional[float], b: Optional[float]) -> bool:
    if a is None or b is None:
        return a is not b
    return abs(float(a) - float(b)) >= PRICE_EPSILON


def within_bounds(
    current_price: float,
    discount: float,
    min_price: Optional[float],
    max_price: Optional[float],
    min_discount: Optional[float],
) -> bool:
    """
    True iff a listing qualifies for a rule: price in [min_price, max_price]
    and discount >= min_discount. Missing bounds do not constrain.
    """
    if min_discount is not None and discount < min_discount:
        return False
    if min_price is not None and current_price < min_price:
        return False
    if max_price is not None and current_price > max_price:
        return False
    return True


def listing_satisfies(rule, listing) -> bool:
    return within_bounds(
        listing.current_price,
        listing.discount_percent,
        rule.min_price,
        rule.max_price,
        rule.min_discount,
    )
