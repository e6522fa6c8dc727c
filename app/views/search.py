"""
Daycare search page.

The first result page is rendered on the server so shared links work without
JavaScript; the page then opens the live search socket for typing, filtering
and back/forward navigation.

Visiting ``/search`` with no parameters restores the last search of the
session (or, for members, the last one stored in the database) by
redirecting to it once.
"""

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from starlette.responses import RedirectResponse

from app.api.collections import compare_ids, recently_viewed
from app.api.common import get_search_client, last_search_store, new_executor, tier_for
from app.auth import get_auth_signal
from app.database import get_db
from app.search.address import InMemoryAddress
from app.search.client import SearchClient
from app.search.formatting import format_type_label
from app.search.query_spec import PriceBand, SortKey, SortOrder
from app.search.results import present_in
from app.search.session import results_payload
from app.search.sync import MountOutcome, SyncController
from app.search.tiering import AuthSignal, first_page_only, login_url
from app.search.url_codec import encode, from_query_string, search_url
from app.views.base import APIRouter, templates

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/search")
async def search_page(
    request: Request,
    signal: AuthSignal = Depends(get_auth_signal),
    client: SearchClient = Depends(get_search_client),
    db: Session = Depends(get_db),
):
    """Render the search page for the filters in the query string."""
    address = InMemoryAddress(from_query_string(request.url.query))
    controller = SyncController(address, store=last_search_store(request.session, signal, db))

    if controller.mount() is MountOutcome.REDIRECTED:
        return RedirectResponse(url=address.url, status_code=302)

    spec = controller.spec
    tier = tier_for(signal)
    if first_page_only(spec, tier) != spec:
        # The address follows so the restore snapshot carries page 1 too.
        spec = controller.update(page=1)

    executor = new_executor(client)
    state = await executor.execute(spec, tier)
    results = results_payload(state, spec, tier)
    params = encode(spec)
    current_url = search_url(params)
    comparing = compare_ids(request.session)

    return templates.TemplateResponse(
        request,
        "search.html",
        {
            "spec": spec,
            "params": params,
            "current_url": current_url,
            "results": results,
            "is_guest": tier.is_guest,
            "login_url": login_url(current_url) if tier.is_guest else None,
            "recently_viewed": present_in(recently_viewed(request.session), results["items"]),
            "compare_ids": comparing,
            "compare_items": [item for item in map(executor.cached_item, comparing) if item is not None],
            "price_bands": [band.value for band in PriceBand],
            "sort_keys": [key.value for key in SortKey],
            "sort_orders": [order.value for order in SortOrder],
            "type_label": format_type_label,
        },
    )
