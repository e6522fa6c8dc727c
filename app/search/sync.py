"""State machine keeping the Query Spec and the address bar consistent.

Two event sources compete once the controller is ready:

``update(**changes)``
    An internal mutation (the user touched a filter, the sort or the page).
    The Query Spec is the source of truth: couplings and the page-reset policy are
    applied, then the URL is rewritten in place if it differs.

``navigated(params)``
    An external navigation (back/forward, a shared link).  The URL is the
    source of truth: differing fields are adopted verbatim and nothing is
    written back, so the two sides cannot oscillate.

The controller's own writes are recognised by ``self_updating`` and ignored
when the address echoes them back synchronously.  Nothing raised by bad
input escapes the controller; it is logged and the previous state is kept.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Mapping, MutableMapping, Optional, Protocol

from app.search.address import Address
from app.search.page_reset import PageResetPolicy
from app.search.query_spec import DEFAULT_SPEC, QuerySpec, apply_couplings
from app.search.url_codec import ParamMap, decode, encode, params_equal

logger = logging.getLogger(__name__)

#: Session key of the session-scoped last-search snapshot.
SNAPSHOT_SESSION_KEY = "last_search"

#: Session key marking that a restore redirect is in flight.
RESTORE_SESSION_KEY = "last_search_restoring"


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class MountOutcome(str, Enum):
    READY = "ready"
    REDIRECTED = "redirected"


class SnapshotStore(Protocol):
    def load(self) -> Optional[ParamMap]: ...

    def save(self, params: Mapping[str, str]) -> None: ...

    def clear(self) -> None: ...


def _clean_params(value: Any) -> Optional[ParamMap]:
    """Validate a stored snapshot; anything other than a str->str mapping is discarded."""
    if not isinstance(value, Mapping):
        return None
    params = {k: v for k, v in value.items() if isinstance(k, str) and isinstance(v, str) and v}
    return params or None


class SessionSnapshotStore:
    """Snapshot kept in a session mapping (e.g. ``request.session``)."""

    def __init__(self, session: MutableMapping[str, Any], key: str = SNAPSHOT_SESSION_KEY):
        self._session = session
        self._key = key

    def load(self) -> Optional[ParamMap]:
        params = _clean_params(self._session.get(self._key))
        if params is None and self._key in self._session:
            logger.debug("Discarding malformed session search snapshot")
            self._session.pop(self._key, None)
        return params

    def save(self, params: Mapping[str, str]) -> None:
        self._session[self._key] = dict(params)

    def clear(self) -> None:
        self._session.pop(self._key, None)


class LastSearchStore:
    """Remembers the last settled search so an empty ``/search`` can restore it.

    The session-scoped copy wins; the durable copy is only consulted when the
    session has none.  Whichever is consumed, both are cleared.  A marker in
    the session allows a single restore redirect until the next successful
    mount, so a bad snapshot can never bounce the browser in a loop.
    """

    def __init__(self, session: MutableMapping[str, Any], durable: Optional[SnapshotStore] = None):
        self._session = session
        self._local = SessionSnapshotStore(session)
        self._durable = durable

    def save(self, params: Mapping[str, str]) -> None:
        stores = [s for s in (self._local, self._durable) if s is not None]
        for store in stores:
            if params:
                store.save(params)
            else:
                store.clear()

    def consume(self) -> Optional[ParamMap]:
        if self._session.get(RESTORE_SESSION_KEY):
            logger.debug("Restore already attempted; not redirecting again")
            return None

        snapshot = self._local.load()
        if snapshot is None and self._durable is not None:
            snapshot = _clean_params(self._durable.load())
        if snapshot is None:
            return None

        self._local.clear()
        if self._durable is not None:
            self._durable.clear()
        self._session[RESTORE_SESSION_KEY] = True
        return snapshot

    def mounted(self) -> None:
        self._session.pop(RESTORE_SESSION_KEY, None)


class SyncController:
    """Reconcile a :class:`QuerySpec` with an :class:`Address`.

    Args:
        address: Where the shareable representation lives.
        store: Last-search snapshot store; optional.
        on_change: Called with ``(old, new)`` whenever the Query Spec changes.
    """

    def __init__(
        self,
        address: Address,
        store: Optional[LastSearchStore] = None,
        on_change: Optional[Callable[[QuerySpec, QuerySpec], None]] = None,
    ):
        self.address = address
        self.store = store
        self.on_change = on_change
        self.state = SyncState.UNINITIALIZED
        self.spec: QuerySpec = DEFAULT_SPEC
        self.self_updating = False
        self.last_known_region: Optional[str] = None
        self.url_writes = 0
        self._page_policy = PageResetPolicy()

    @property
    def initialized(self) -> bool:
        return self.state is SyncState.READY

    def mount(self) -> MountOutcome:
        """Seed the Query Spec from the address, or redirect to the last search first."""
        if self.initialized:
            return MountOutcome.READY

        params = self.address.params()
        if not params and self.store is not None:
            snapshot = self.store.consume()
            if snapshot:
                logger.info(f"Restoring last search {snapshot}")
                self.address.navigate(snapshot)
                return MountOutcome.REDIRECTED

        spec = decode(params)
        self._page_policy.prime(spec)
        self.last_known_region = spec.region
        self.state = SyncState.READY
        if self.store is not None:
            self.store.mounted()
            self.store.save(encode(spec))
        self._set_spec(spec)
        return MountOutcome.READY

    def update(self, **changes: Any) -> QuerySpec:
        """Apply a user-initiated batch of field changes and write the URL once."""
        if not self.initialized:
            logger.warning(f"Ignoring update before mount: {sorted(changes)}")
            return self.spec

        try:
            merged = replace(self.spec, **changes)
        except (TypeError, ValueError) as exc:
            logger.warning(f"Rejected search update {changes!r}: {exc}")
            return self.spec

        settled = apply_couplings(self.spec, merged, self.last_known_region)
        settled = self._page_policy.settle(settled)
        self.last_known_region = settled.region
        self._set_spec(settled)
        self._write_url()
        return self.spec

    def navigated(self, params: Optional[Mapping[str, str]] = None) -> QuerySpec:
        """Adopt the state carried by an external navigation."""
        if self.self_updating:
            return self.spec
        if not self.initialized:
            logger.debug("Ignoring navigation before mount")
            return self.spec

        incoming = decode(self.address.params() if params is None else params)
        changed = incoming.changed_fields(self.spec)
        if changed:
            logger.debug(f"Navigation changed {sorted(changed)}")
            self._set_spec(replace(self.spec, **{name: getattr(incoming, name) for name in changed}))
        self._page_policy.prime(self.spec)
        self.last_known_region = self.spec.region
        if self.store is not None:
            self.store.save(encode(self.spec))
        return self.spec

    def _set_spec(self, spec: QuerySpec) -> None:
        old, self.spec = self.spec, spec
        if spec != old and self.on_change is not None:
            self.on_change(old, spec)

    def _write_url(self) -> None:
        params = encode(self.spec)
        if self.store is not None:
            self.store.save(params)
        if params_equal(params, self.address.params()):
            return

        self.self_updating = True
        try:
            self.address.replace(params)
            self.url_writes += 1
        finally:
            self.self_updating = False
