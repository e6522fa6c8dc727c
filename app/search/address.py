"""Address-bar abstractions the Sync Controller reads from and writes to.

``replace`` rewrites the current history entry (history-neutral) while
``navigate`` pushes a new one.  Two implementations exist:

* :class:`InMemoryAddress` keeps its own history stack.  The search page
  view uses it to run a mount against the request URL, and it reproduces
  back/forward behaviour for in-process consumers.
* :class:`RemoteAddress` mirrors a browser on the far side of the live
  search WebSocket and turns writes into outbound messages.
"""

import logging
from typing import Callable, Mapping, Optional, Protocol

from app.search.url_codec import ParamMap, search_url

logger = logging.getLogger(__name__)

Listener = Callable[[ParamMap], None]


class Address(Protocol):
    def params(self) -> ParamMap: ...

    def replace(self, params: Mapping[str, str]) -> None: ...

    def navigate(self, params: Mapping[str, str]) -> None: ...


class InMemoryAddress:
    """Address with a browser-like history stack.

    Listeners are told about every change of the current entry, including
    the ones caused by :meth:`replace`, just like a router that re-renders
    on its own writes.
    """

    def __init__(self, params: Optional[Mapping[str, str]] = None):
        self._entries: list[ParamMap] = [dict(params or {})]
        self._index = 0
        self._listeners: list[Listener] = []
        self.navigations = 0

    def params(self) -> ParamMap:
        return dict(self._entries[self._index])

    @property
    def url(self) -> str:
        return search_url(self._entries[self._index])

    @property
    def history(self) -> list[ParamMap]:
        return [dict(entry) for entry in self._entries]

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def replace(self, params: Mapping[str, str]) -> None:
        self._entries[self._index] = dict(params)
        self._notify()

    def navigate(self, params: Mapping[str, str]) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append(dict(params))
        self._index += 1
        self.navigations += 1
        self._notify()

    def back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        self._notify()
        return True

    def forward(self) -> bool:
        if self._index >= len(self._entries) - 1:
            return False
        self._index += 1
        self._notify()
        return True

    def _notify(self) -> None:
        current = self.params()
        for listener in list(self._listeners):
            listener(current)


class RemoteAddress:
    """Local mirror of a remote browser's query string.

    Args:
        send: Callback receiving outbound messages for the browser.
        params: The browser's query parameters when the session started.
    """

    def __init__(self, send: Callable[[dict], None], params: Optional[Mapping[str, str]] = None):
        self._send = send
        self._params: ParamMap = dict(params or {})

    def params(self) -> ParamMap:
        return dict(self._params)

    def observe(self, params: Mapping[str, str]) -> None:
        """Record a navigation the browser reports (back/forward, link click)."""
        self._params = dict(params)

    def replace(self, params: Mapping[str, str]) -> None:
        self._params = dict(params)
        self._send({"type": "url", "mode": "replace", "params": dict(params), "url": search_url(params)})

    def navigate(self, params: Mapping[str, str]) -> None:
        self._params = dict(params)
        logger.debug(f"Asking browser to navigate to {search_url(params)}")
        self._send({"type": "navigate", "params": dict(params), "url": search_url(params)})
