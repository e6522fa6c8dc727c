"""HTTP client for the remote daycare search API.

The remote service owns indexing and filtering; this module only knows the
request projection of a :class:`QuerySpec` and the response envelope::

    {"success": true,
     "data": [...],
     "metadata": {"pagination": {"currentPage": 1, "totalPages": 10, "totalCount": 37}}}
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from app.search.query_spec import QuerySpec

logger = logging.getLogger(__name__)

SEARCH_PATH = "/api/daycares/search"

#: Characters escaped before types are joined into the ``daycareType`` pattern.
_REGEX_SPECIAL = re.compile(r"[.*+?^${}()|[\]\\]")


class SearchClientError(Exception):
    """The remote search API could not be reached or answered nonsense."""


@dataclass
class SearchPage:
    """One page of search results as reported by the remote API."""

    items: list[dict[str, Any]] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total_count: int = 0

    def to_dict(self) -> dict:
        return {
            "items": self.items,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "total_count": self.total_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SearchPage":
        return cls(
            items=list(data.get("items") or []),
            current_page=int(data.get("current_page") or 1),
            total_pages=int(data.get("total_pages") or 0),
            total_count=int(data.get("total_count") or 0),
        )


def escape_pattern(value: str) -> str:
    """Escape *value* for use inside the server's regular expression filter."""
    return _REGEX_SPECIAL.sub(lambda m: "\\" + m.group(0), value)


def to_server_params(spec: QuerySpec, page_size: int, page: Optional[int] = None) -> dict[str, str]:
    """Project *spec* onto the remote API's query parameters.

    Sorting is deliberately absent: the server filters, the client orders.

    Args:
        spec: The settled query.
        page_size: Results per page (the ``limit`` parameter).
        page: Overrides ``spec.page``; the map view always asks for page 1.

    Returns:
        A flat parameter dictionary with string values.
    """
    params: dict[str, str] = {
        "page": str(spec.page if page is None else page),
        "limit": str(page_size),
    }
    if spec.free_text:
        params["q"] = spec.free_text
    if spec.region:
        params["region"] = spec.region

    price_min, price_max = spec.price_bounds
    if price_min is not None:
        params["priceMin"] = str(price_min)
    if price_max is not None:
        params["priceMax"] = str(price_max)

    if spec.types:
        params["daycareType"] = "|".join(escape_pattern(t) for t in sorted(spec.types))
    if spec.age_ranges:
        params["ageRange"] = ",".join(sorted(spec.age_ranges))
    if spec.program_ages:
        params["programAge"] = ",".join(sorted(spec.program_ages))
    # Vacancy is only meaningful together with an age range.
    if spec.age_ranges and spec.availability:
        params["vacancy"] = sorted(spec.availability)[0]
    if spec.ward:
        params["ward"] = spec.ward
    if spec.cwelcc_only:
        params["cwelcc"] = "true"
    if spec.subsidy_only:
        params["subsidy"] = "true"
    return params


def normalize_item(item: dict[str, Any]) -> dict[str, Any]:
    """Copy *item*, exposing the Mongo ``_id`` as ``id``."""
    normalized = dict(item)
    normalized["id"] = str(item.get("_id") or item.get("id") or "")
    return normalized


def parse_search_response(payload: Any, page: int, page_size: int) -> SearchPage:
    """Validate the response envelope and convert it to a :class:`SearchPage`.

    Raises:
        SearchClientError: If the payload is not a successful search envelope.
    """
    if not isinstance(payload, dict) or not payload.get("success"):
        raise SearchClientError("Invalid data format received")
    data = payload.get("data")
    if not isinstance(data, list):
        raise SearchClientError("Search response carried no data list")

    pagination = (payload.get("metadata") or {}).get("pagination") or {}
    try:
        total_count = int(pagination.get("totalCount", len(data)))
        total_pages = int(pagination.get("totalPages") or (total_count + page_size - 1) // page_size)
        current_page = int(pagination.get("currentPage") or page)
    except (TypeError, ValueError) as exc:
        raise SearchClientError(f"Malformed pagination metadata: {exc}") from exc

    items = [normalize_item(item) for item in data if isinstance(item, dict)]
    return SearchPage(items=items, current_page=current_page, total_pages=total_pages, total_count=total_count)


class SearchClient:
    """Thin wrapper around the remote daycare API.

    Args:
        base_url: Root URL of the API, e.g. ``https://api.kinderbridge.ca``.
        timeout: Per-request timeout in seconds.
        session: Optional pre-configured :class:`requests.Session`.
    """

    def __init__(self, base_url: str, timeout: float = 30, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_json(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        """GET *path* and return the decoded JSON body.

        Raises:
            SearchClientError: On transport errors, non-2xx answers or invalid JSON.
        """
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            raise SearchClientError(f"Request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise SearchClientError(f"Response from {url} was not JSON: {exc}") from exc

    def search(self, params: dict[str, str]) -> SearchPage:
        """Run one paginated search with already-projected *params*."""
        page = int(params.get("page", 1))
        page_size = int(params.get("limit", 1)) or 1
        logger.info(f"Remote search: {params}")
        payload = self.get_json(SEARCH_PATH, params=params)
        result = parse_search_response(payload, page, page_size)
        logger.debug(f"Remote search returned {len(result.items)} of {result.total_count} items")
        return result

    def get_daycare(self, daycare_id: str) -> Optional[dict[str, Any]]:
        """Fetch a single daycare; ``None`` when the API reports it missing."""
        payload = self.get_json(f"/api/daycares/detail/{daycare_id}")
        if not isinstance(payload, dict) or not payload.get("success"):
            return None
        data = payload.get("data")
        return normalize_item(data) if isinstance(data, dict) else None

    def get_list(self, path: str, params: Optional[dict[str, str]] = None) -> list:
        """Fetch an option list, accepting both ``{"data": [...]}`` and bare lists."""
        payload = self.get_json(path, params=params)
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list):
            raise SearchClientError(f"Expected a list from {path}")
        return payload
