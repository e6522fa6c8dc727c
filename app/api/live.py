"""Live search socket.

The search page opens ``/api/search/live?<its query string>`` and from then
on streams keystrokes, filter changes and back/forward navigations to a
:class:`~app.search.session.SearchSession`, which answers with URL updates
and result pages.  One session per connection; closing the socket cancels
everything the session has in flight.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from app.api.common import get_search_client, last_search_store, new_executor
from app.auth import get_auth_signal
from app.config import settings
from app.database import get_db
from app.search.client import SearchClient
from app.search.session import SearchSession
from app.search.tiering import AuthSignal
from app.search.url_codec import from_query_string

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


async def _pump(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """Deliver queued session messages in order."""
    while True:
        message = await outbox.get()
        await websocket.send_json(message)


@router.websocket("/search/live")
async def live_search(
    websocket: WebSocket,
    signal: AuthSignal = Depends(get_auth_signal),
    client: SearchClient = Depends(get_search_client),
    db: Session = Depends(get_db),
):
    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()
    session = SearchSession(
        from_query_string(websocket.url.query),
        signal,
        new_executor(client),
        outbox.put_nowait,
        store=last_search_store(websocket.session, signal, db),
        session=websocket.session,
        debounce_seconds=settings.search_debounce_seconds,
        guest_page_size=settings.guest_page_size,
        member_page_size=settings.member_page_size,
    )
    sender = asyncio.create_task(_pump(websocket, outbox))
    logger.debug(f"Live search session opened (guest={signal.is_guest})")

    try:
        await session.start()
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                logger.warning("Discarding malformed live search message")
                outbox.put_nowait({"type": "error", "message": "Malformed message"})
                continue
            await session.handle(message)
    except WebSocketDisconnect:
        logger.debug("Live search session closed by the browser")
    finally:
        session.close()
        sender.cancel()
