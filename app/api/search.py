"""Daycare search API endpoints.

Stateless JSON counterparts of the live search socket, used by the search
page's first paint, by integrations and by the map:

- ``GET /api/search``: one tiered, sorted result page for the URL parameters
  of the search page (``?region=Toronto&sortBy=price``...)
- ``GET /api/search/map``: every match on one page, members only
- ``GET /api/daycares/{regions,cities,program-ages,types}``: filter options
- ``GET /api/daycares/{id}``: one daycare, recorded as recently viewed
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.api.collections import remember_viewed
from app.api.common import dataset_path, get_search_client, new_executor, tier_for
from app.auth import get_auth_signal, require_member
from app.config import settings
from app.middleware.rate_limit import limiter
from app.search.client import SearchClient, SearchClientError
from app.search.executor import SearchUnavailableError, load_fallback_dataset
from app.search.formatting import format_price, type_options
from app.search.session import results_payload
from app.search.tiering import AuthSignal, first_page_only
from app.search.url_codec import decode, encode, from_query_string, search_url
from app.utils.cache import cached

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])

REGIONS_PATH = "/api/daycares/regions/all"
CITIES_PATH = "/api/daycares/cities/all"
PROGRAM_AGES_PATH = "/api/daycares/program-ages/all"
TYPES_PATH = "/api/daycares/types/all"


@router.get("/search")
@limiter.limit(settings.search_rate_limit)
async def search_api(
    request: Request,
    signal: AuthSignal = Depends(get_auth_signal),
    client: SearchClient = Depends(get_search_client),
):
    """Run one search for the search page's URL parameters.

    The parameters are exactly those of ``/search`` (``q``, ``region``,
    ``ward``, ``priceRange``, ``types``, ``ageRange``, ``programAges``,
    ``availability``, ``cwelcc``, ``subsidy``, ``sortBy``, ``sortOrder``,
    ``page``); unknown or malformed values fall back to their defaults.

    Example:
    ```
    GET /api/search?region=Toronto&sortBy=price&sortOrder=desc
    ```

    Response:
    ```json
    {
      "items": [{"id": "66a1", "name": "Sunny Days", "price_display": "1,500$"}],
      "page": 1,
      "page_size": 4,
      "total_pages": 10,
      "total_count": 37,
      "summary": "Showing 4 of 37, sign up to see all",
      "hidden": 33,
      "params": {"region": "Toronto", "sortBy": "price", "sortOrder": "desc"},
      "url": "/search?region=Toronto&sortBy=price&sortOrder=desc"
    }
    ```

    Raises:
        HTTPException 503: If neither the API nor the bundled data could answer.
    """
    tier = tier_for(signal)
    spec = first_page_only(decode(from_query_string(request.url.query)), tier)
    logger.info(f"Search request: {encode(spec)} (guest={tier.is_guest})")

    state = await new_executor(client).execute(spec, tier)
    if state.error is not None and state.data is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=state.error)

    params = encode(spec)
    return {**results_payload(state, spec, tier), "params": params, "url": search_url(params)}


@router.get("/search/map")
@limiter.limit(settings.search_rate_limit)
async def search_map_api(
    request: Request,
    member: AuthSignal = Depends(require_member),
    client: SearchClient = Depends(get_search_client),
):
    """All matches for the map, ignoring pagination (members only)."""
    spec = decode(from_query_string(request.url.query))
    page = await new_executor(client).execute_all(spec, tier_for(member))
    items = [
        {
            "id": item.get("id"),
            "name": item.get("name"),
            "latitude": (item.get("coordinates") or {}).get("lat"),
            "longitude": (item.get("coordinates") or {}).get("lng"),
            "price_display": format_price(item.get("price"), item.get("priceString")),
        }
        for item in (page.items if page else [])
    ]
    return {"items": items, "total_count": page.total_count if page else 0}


def _options(key: str, path: str, ttl: int, client: SearchClient, params: dict | None = None) -> list:
    """Fetch an option list through the shared cache; empty on failure."""
    try:
        values = cached(key, lambda: client.get_list(path, params=params), ttl=ttl)
    except SearchClientError as exc:
        logger.warning(f"Option lookup {path} failed: {exc}")
        return []
    return [v for v in values if isinstance(v, str) and v]


@router.get("/daycares/regions")
async def list_regions(client: SearchClient = Depends(get_search_client)):
    return await asyncio.to_thread(
        _options, "daycares:regions", REGIONS_PATH, settings.options_cache_ttl, client
    )


@router.get("/daycares/cities")
async def list_cities(
    region: str = Query("", max_length=200),
    client: SearchClient = Depends(get_search_client),
):
    """Cities / wards of *region*; empty without a region."""
    if not region:
        return []
    ttl = settings.options_cache_ttl * 2 // 3
    return await asyncio.to_thread(
        _options, f"daycares:cities:{region}", CITIES_PATH, ttl, client, {"region": region}
    )


@router.get("/daycares/program-ages")
async def list_program_ages(client: SearchClient = Depends(get_search_client)):
    return await asyncio.to_thread(
        _options, "daycares:program-ages", PROGRAM_AGES_PATH, settings.options_cache_ttl, client
    )


@router.get("/daycares/types")
async def list_types(
    region: str = Query("", max_length=200),
    city: str = Query("", max_length=200),
    client: SearchClient = Depends(get_search_client),
):
    """Provider types as ``{value, label}`` options; empty until a region or city is chosen."""
    if not region and not city:
        return []
    params = {k: v for k, v in (("region", region), ("city", city)) if v}
    ttl = settings.options_cache_ttl * 2 // 3
    values = await asyncio.to_thread(
        _options, f"daycares:types:{region}:{city}", TYPES_PATH, ttl, client, params
    )
    return type_options(values)


def _fallback_item(daycare_id: str) -> dict | None:
    try:
        items = load_fallback_dataset(str(dataset_path()))
    except SearchUnavailableError as exc:
        logger.error(f"Daycare lookup failed: {exc}")
        return None
    return next((dict(item) for item in items if item.get("id") == daycare_id), None)


@router.get("/daycares/{daycare_id}")
async def get_daycare(
    daycare_id: str,
    request: Request,
    client: SearchClient = Depends(get_search_client),
):
    """Return one daycare and remember it as recently viewed.

    Raises:
        HTTPException 404: If the daycare is unknown.
    """
    try:
        item = await asyncio.to_thread(client.get_daycare, daycare_id)
    except SearchClientError as exc:
        logger.warning(f"Daycare API unavailable, using bundled data: {exc}")
        item = _fallback_item(daycare_id)

    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Daycare not found")

    item["price_display"] = format_price(item.get("price"), item.get("priceString"))
    remember_viewed(request.session, item)
    return item
