"""One search page visit, driven by messages from the browser.

A :class:`SearchSession` owns the Query Spec for as long as the live search
socket is open.  Inbound messages::

    {"type": "type", "text": "sunny"}              keystroke in the search box
    {"type": "flush"}                              search box submitted
    {"type": "change", "fields": {"region": ...}}  filter / sort change
    {"type": "page", "page": 3}                    pagination (members only)
    {"type": "navigate", "params": {...}}          browser back/forward

Outbound messages are ``echo``, ``url``, ``navigate``, ``results``,
``redirect`` and ``error``.
"""

import asyncio
import logging
from dataclasses import fields
from typing import Any, Callable, MutableMapping, Optional

from app.search.address import RemoteAddress
from app.search.debounce import DEFAULT_QUIET_INTERVAL, DebouncedInput
from app.search.executor import QueryState, SearchExecutor
from app.search.formatting import format_price
from app.search.query_spec import SET_FIELDS, QuerySpec
from app.search.results import sort_results, truncate_for_tier
from app.search.sync import LastSearchStore, MountOutcome, SyncController
from app.search.tiering import (
    GUEST_PAGE_SIZE,
    MEMBER_PAGE_SIZE,
    AuthSignal,
    GatedAction,
    TierDecision,
    decide_tier,
    first_page_only,
    is_allowed,
    login_redirect,
    summarize,
)
from app.search.url_codec import decode, search_url

logger = logging.getLogger(__name__)

#: Query Spec fields a ``change`` message may touch (``page`` goes through ``page``).
CHANGEABLE_FIELDS = frozenset(f.name for f in fields(QuerySpec)) - {"page", "free_text"}


def results_payload(state: QueryState, spec: QuerySpec, tier: TierDecision) -> dict[str, Any]:
    """Render an executor state into the JSON shape every consumer receives."""
    page = state.data
    items: list[dict[str, Any]] = []
    total_count = 0
    total_pages = 0
    if page is not None:
        ordered = sort_results(page.items, spec.sort_key, spec.sort_order)
        items = [
            {**item, "price_display": format_price(item.get("price"), item.get("priceString"))}
            for item in truncate_for_tier(ordered, tier)
        ]
        total_count = page.total_count
        total_pages = page.total_pages

    summary = summarize(total_count, len(items), tier)
    return {
        "items": items,
        "page": spec.page,
        "page_size": tier.page_size,
        "total_pages": total_pages,
        "total_count": total_count,
        "summary": summary.message,
        "hidden": summary.hidden,
        "has_more": summary.has_more,
        "prompt_signup": summary.prompt_signup,
        "is_guest": tier.is_guest,
        "is_loading": state.is_loading,
        "is_fetching": state.is_fetching,
        "is_placeholder": state.is_placeholder,
        "from_fallback": state.from_fallback,
        "error": state.error,
    }


def _coerce_changes(raw: Any) -> dict[str, Any]:
    """Keep the known fields of a ``change`` message; lone strings become one-element sets."""
    if not isinstance(raw, dict):
        return {}
    changes: dict[str, Any] = {}
    for name, value in raw.items():
        if name not in CHANGEABLE_FIELDS:
            logger.debug(f"Ignoring unknown search field {name!r}")
            continue
        if name in SET_FIELDS:
            if isinstance(value, str):
                value = [value] if value else []
            elif not isinstance(value, (list, tuple, set, frozenset)):
                logger.debug(f"Ignoring non-list value for {name!r}")
                continue
            value = frozenset(str(v) for v in value if v)
        elif name in ("region", "ward") and isinstance(value, str):
            value = " ".join(value.split())
        elif name in ("cwelcc_only", "subsidy_only") and not isinstance(value, bool):
            value = str(value).strip().lower() in ("true", "1", "yes", "on")
        changes[name] = value
    return changes


class SearchSession:
    """Wire address, controller, debounce buffer and executor for one visit.

    Args:
        params: Query parameters of the page the browser is showing.
        signal: Authentication state of the visitor.
        executor: Executor bound to this visit.
        send: Callback delivering outbound messages to the browser.
        store: Last-search snapshot store.
        session: Cookie session mapping, used for the login return target.
        debounce_seconds: Quiet interval of the search box.
    """

    def __init__(
        self,
        params: dict[str, str],
        signal: AuthSignal,
        executor: SearchExecutor,
        send: Callable[[dict], None],
        store: Optional[LastSearchStore] = None,
        session: Optional[MutableMapping[str, Any]] = None,
        debounce_seconds: float = DEFAULT_QUIET_INTERVAL,
        guest_page_size: int = GUEST_PAGE_SIZE,
        member_page_size: int = MEMBER_PAGE_SIZE,
    ):
        self._send = send
        self._session = session
        self.executor = executor
        self.tier = decide_tier(signal, guest_page_size, member_page_size)
        self.address = RemoteAddress(send, params)
        self.controller = SyncController(self.address, store=store, on_change=self._spec_changed)
        self.search_input = DebouncedInput(self._commit_text, delay=debounce_seconds)
        self._tasks: set[asyncio.Task] = set()
        self._started = False
        self.closed = False

    async def start(self) -> MountOutcome:
        """Mount the controller and deliver the first result page."""
        outcome = self.controller.mount()
        if outcome is MountOutcome.REDIRECTED:
            return outcome
        if first_page_only(self.controller.spec, self.tier) != self.controller.spec:
            self.controller.update(page=1)
        self.search_input.reset(self.controller.spec.free_text)
        self._started = True
        await self.refresh()
        return outcome

    async def handle(self, message: Any) -> None:
        """Dispatch one inbound message; malformed input is logged and ignored."""
        if self.closed or not isinstance(message, dict):
            return
        kind = message.get("type")

        if kind == "type":
            text = message.get("text")
            if isinstance(text, str):
                self.search_input.type(text)
                self._send({"type": "echo", "text": self.search_input.raw})
        elif kind == "flush":
            self.search_input.flush()
        elif kind == "change":
            changes = _coerce_changes(message.get("fields"))
            if changes:
                self.controller.update(**changes)
        elif kind == "page":
            self.change_page(message.get("page"))
        elif kind == "navigate":
            params = message.get("params")
            if isinstance(params, dict):
                self.navigated({str(k): str(v) for k, v in params.items()})
        else:
            logger.warning(f"Unknown live search message type {kind!r}")

    def change_page(self, page: Any) -> None:
        if not is_allowed(GatedAction.CHANGE_PAGE, self.tier):
            self._send({"type": "redirect", "url": login_redirect(self.current_url, self._session)})
            return
        if isinstance(page, int) and not isinstance(page, bool):
            self.controller.update(page=page)
        else:
            logger.debug(f"Ignoring page change to {page!r}")

    def navigated(self, params: dict[str, str]) -> None:
        incoming = decode(params)
        if first_page_only(incoming, self.tier) != incoming:
            # A guest went back to a later page; stay on the first one.
            params = {key: value for key, value in params.items() if key != "page"}
            self.address.replace(params)
        else:
            self.address.observe(params)
        spec = self.controller.navigated(params)
        if spec.free_text != self.search_input.committed:
            self.search_input.reset(spec.free_text)

    @property
    def current_url(self) -> str:
        return search_url(self.address.params())

    async def refresh(self) -> Optional[dict[str, Any]]:
        """Fetch and send results for the current spec, unless superseded."""
        if self.tier is None:
            return None
        spec = self.controller.spec
        state = await self.executor.execute(spec, self.tier)
        if self.closed or spec != self.controller.spec:
            return None
        if state.error is not None and state.data is None:
            self._send({"type": "error", "message": state.error})
            return None
        payload = results_payload(state, spec, self.tier)
        self._send({"type": "results", **payload})
        return payload

    def close(self) -> None:
        """Cancel timers and anything in flight."""
        self.closed = True
        self.search_input.cancel()
        self.executor.invalidate()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _commit_text(self, text: str) -> None:
        self.controller.update(free_text=text)

    def _spec_changed(self, old: QuerySpec, new: QuerySpec) -> None:
        if not self._started or self.closed:
            return
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
