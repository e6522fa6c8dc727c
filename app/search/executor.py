"""Remote query execution with caching, placeholders and stale-response dropping.

One :class:`SearchExecutor` lives for one page visit.  It keeps showing the
previous result set while a new key is being fetched, serves fresh results
from its in-memory cache (then from the shared Redis cache) without hitting
the network, shares one in-flight request between identical keys, and
discards responses that resolve after a newer request was started.

When the remote API is unreachable the bundled static dataset is sliced by
page instead; only if that also fails does the state carry an error.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urlencode

from app.search.client import SearchClient, SearchClientError, SearchPage, normalize_item, to_server_params
from app.search.query_spec import QuerySpec
from app.search.tiering import TierDecision
from app.utils.cache import cache_get, cache_set

logger = logging.getLogger(__name__)

#: Seconds a fetched page counts as fresh.
FRESHNESS_SECONDS = 300

#: Page size used for the "everything on one page" map variant.
MAP_PAGE_LIMIT = 1000

DEFAULT_DATASET_PATH = Path(__file__).resolve().parent.parent / "data" / "daycares.json"


class SearchUnavailableError(Exception):
    """Neither the remote API nor the bundled dataset could produce results."""


@dataclass(frozen=True)
class QueryState:
    """What the result list should show right now."""

    key: Optional[str] = None
    data: Optional[SearchPage] = None
    is_loading: bool = False
    is_fetching: bool = False
    is_placeholder: bool = False
    from_fallback: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class _CacheEntry:
    fetched_at: float
    page: SearchPage
    from_fallback: bool


def cache_key(spec: QuerySpec, page_size: int, page: Optional[int] = None) -> str:
    """Key covering every field that changes the server's answer (sorting excluded)."""
    params = to_server_params(spec, page_size, page=page)
    return "daycares:search:" + urlencode(sorted(params.items()))


@lru_cache(maxsize=4)
def load_fallback_dataset(path: str = str(DEFAULT_DATASET_PATH)) -> tuple:
    """Load the bundled daycare list shipped with the application.

    Raises:
        SearchUnavailableError: If the file is missing or not a JSON list.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        raise SearchUnavailableError(f"Fallback dataset unavailable: {exc}") from exc
    if not isinstance(data, list):
        raise SearchUnavailableError("Fallback dataset is not a list")
    return tuple(normalize_item(item) for item in data if isinstance(item, dict))


def fallback_page(items: tuple, page: int, page_size: int) -> SearchPage:
    """Slice the static dataset the way the API would paginate it."""
    start = (page - 1) * page_size
    total = len(items)
    return SearchPage(
        items=[dict(item) for item in items[start : start + page_size]],
        current_page=page,
        total_pages=(total + page_size - 1) // page_size if total else 0,
        total_count=total,
    )


class SearchExecutor:
    """Run searches for one page visit.

    Args:
        client: Remote API client.
        freshness: Seconds a cached page may be reused without a request.
        dataset_path: Static dataset used when the API is unreachable.
        map_limit: Page size of the map variant.
        use_shared_cache: Also read/write the cross-session Redis cache.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        client: SearchClient,
        freshness: float = FRESHNESS_SECONDS,
        dataset_path: Optional[Path] = None,
        map_limit: int = MAP_PAGE_LIMIT,
        use_shared_cache: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._freshness = freshness
        self._dataset_path = str(dataset_path or DEFAULT_DATASET_PATH)
        self._map_limit = map_limit
        self._use_shared_cache = use_shared_cache
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._inflight: dict[str, asyncio.Future] = {}
        self._generation = 0
        self.state = QueryState()
        self.requests_issued = 0

    # ------------------------------------------------------------------
    # cache
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> Optional[_CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at > self._freshness:
            self._entries.pop(key, None)
            return None
        return entry

    def _remember(self, key: str, page: SearchPage, from_fallback: bool) -> None:
        self._entries[key] = _CacheEntry(fetched_at=self._clock(), page=page, from_fallback=from_fallback)

    # ------------------------------------------------------------------
    # transport (runs in a worker thread)
    # ------------------------------------------------------------------

    def _fetch(self, key: str, params: dict[str, str], page: int, page_size: int) -> tuple[SearchPage, bool]:
        if self._use_shared_cache:
            shared = cache_get(key)
            if isinstance(shared, dict):
                logger.debug(f"Shared cache hit for {key}")
                return SearchPage.from_dict(shared), False

        try:
            self.requests_issued += 1
            result = self._client.search(params)
        except SearchClientError as exc:
            logger.warning(f"Search API unavailable, serving bundled data: {exc}")
            return fallback_page(load_fallback_dataset(self._dataset_path), page, page_size), True

        if self._use_shared_cache:
            cache_set(key, result.to_dict(), ttl=int(self._freshness))
        return result, False

    def _start(self, key: str, params: dict[str, str], page: int, page_size: int) -> asyncio.Future:
        task = self._inflight.get(key)
        if task is not None:
            logger.debug(f"Joining in-flight request for {key}")
            return task

        task = asyncio.ensure_future(asyncio.to_thread(self._fetch, key, params, page, page_size))
        self._inflight[key] = task

        def _done(finished: asyncio.Future) -> None:
            if self._inflight.get(key) is finished:
                del self._inflight[key]

        task.add_done_callback(_done)
        return task

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    async def execute(self, spec: QuerySpec, tier: TierDecision) -> QueryState:
        """Bring :attr:`state` up to date for *spec* at *tier*'s page size."""
        key = cache_key(spec, tier.page_size)
        self._generation += 1
        generation = self._generation

        cached = self._lookup(key)
        if cached is not None:
            self.state = QueryState(key=key, data=cached.page, from_fallback=cached.from_fallback)
            return self.state

        previous = self.state
        self.state = QueryState(
            key=key,
            data=previous.data,
            is_loading=previous.data is None,
            is_fetching=True,
            is_placeholder=previous.data is not None,
            from_fallback=previous.from_fallback,
        )

        params = to_server_params(spec, tier.page_size)
        task = self._start(key, params, spec.page, tier.page_size)
        try:
            page, from_fallback = await asyncio.shield(task)
        except SearchUnavailableError as exc:
            if generation != self._generation:
                return self.state
            logger.error(f"Search failed for {key}: {exc}")
            self.state = QueryState(
                key=key,
                data=previous.data,
                is_placeholder=previous.data is not None,
                error="We couldn't load daycare listings right now. Please try again.",
            )
            return self.state

        if generation != self._generation:
            logger.debug(f"Dropping stale response for {key}")
            return self.state

        if not from_fallback:
            # Bundled data stands in only until the API answers again.
            self._remember(key, page, from_fallback)
        self.state = QueryState(key=key, data=page, from_fallback=from_fallback)
        return self.state

    async def execute_all(self, spec: QuerySpec, tier: Optional[TierDecision]) -> Optional[SearchPage]:
        """Fetch every match on one page for the map; members only."""
        if tier is None or tier.is_guest:
            logger.debug("Map results requested for a guest; refusing")
            return None

        key = "all:" + cache_key(spec, self._map_limit, page=1)
        cached = self._lookup(key)
        if cached is not None:
            return cached.page

        params = to_server_params(spec, self._map_limit, page=1)
        try:
            self.requests_issued += 1
            page = await asyncio.to_thread(self._client.search, params)
        except SearchClientError as exc:
            logger.warning(f"Map search failed: {exc}")
            return SearchPage()

        self._remember(key, page, False)
        return page

    def invalidate(self) -> None:
        """Forget anything in flight; late responses will be dropped."""
        self._generation += 1
        self.state = QueryState(key=self.state.key, data=self.state.data, from_fallback=self.state.from_fallback)

    def cached_item(self, item_id: str) -> Optional[dict[str, Any]]:
        """Find an item on the current result page or among the pages this executor holds."""
        pages = [self.state.data] if self.state.data is not None else []
        pages += [entry.page for entry in self._entries.values()]
        for page in pages:
            for item in page.items:
                if item.get("id") == item_id:
                    return item
        return None
