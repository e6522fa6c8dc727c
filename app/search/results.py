"""Client-side ordering and guest truncation of a fetched result page.

The remote API filters and paginates but does not sort, so the page that
comes back is ordered here.  Sorting is stable: items with equal keys keep
the order the server returned them in, for both directions.
"""

import logging
import re
from typing import Any, Iterable, Optional, Sequence

from app.search.query_spec import SortKey, SortOrder
from app.search.tiering import TierDecision

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r"\d+(?:\.\d+)?")


def parse_price(value: Any) -> float:
    """Numeric value of a price such as ``"$1,200/month"`` or ``"400-600"``.

    Thousands separators and currency signs are ignored and the first number
    wins, so a range sorts by its lower bound.  Anything unparseable is 0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return 0.0
    match = _LEADING_DIGITS.search(value.replace(",", "").replace("$", ""))
    return float(match.group(0)) if match else 0.0


def _number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _name(value: Any) -> str:
    return value.casefold() if isinstance(value, str) else ""


def sort_key_for(sort_key: SortKey):
    """Return the key function used to order items by *sort_key*."""
    if sort_key is SortKey.RATING:
        return lambda item: _number(item.get("rating"))
    if sort_key is SortKey.PRICE:
        return lambda item: parse_price(item.get("price"))
    if sort_key is SortKey.DISTANCE:
        return lambda item: _number(item.get("distance"))
    return lambda item: _name(item.get("name"))


def sort_results(
    items: Iterable[dict[str, Any]],
    sort_key: SortKey = SortKey.NAME,
    sort_order: SortOrder = SortOrder.ASC,
) -> list[dict[str, Any]]:
    """Return *items* ordered by *sort_key*; ties keep their original order."""
    return sorted(items, key=sort_key_for(sort_key), reverse=sort_order is SortOrder.DESC)


def truncate_for_tier(items: Sequence[dict[str, Any]], tier: Optional[TierDecision]) -> list[dict[str, Any]]:
    """Guests never see more than their page size, whatever the server sent."""
    if tier is None:
        return []
    if tier.is_guest and len(items) > tier.page_size:
        logger.debug(f"Truncating {len(items)} results to {tier.page_size} for a guest")
        return list(items[: tier.page_size])
    return list(items)


def present_in(entries: Iterable[dict[str, Any]], items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep the *entries* (e.g. recently viewed) whose id appears in *items*."""
    ids = {item.get("id") for item in items}
    return [entry for entry in entries if entry.get("id") in ids]
