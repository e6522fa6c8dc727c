"""Reset pagination when the meaning of the current page changes."""

import logging
from dataclasses import replace
from typing import Optional

from app.search.query_spec import FILTER_FIELDS, QuerySpec

logger = logging.getLogger(__name__)


class PageResetPolicy:
    """Compare each settled spec against the previous one, ignoring ``page``.

    Any filter or sort change sends a spec that is past the first page back
    to page 1.  A change of ``page`` alone never triggers a reset, so
    re-requesting the same filters at another page does not recurse.
    """

    def __init__(self):
        self._snapshot: Optional[tuple] = None

    def prime(self, spec: QuerySpec) -> None:
        """Record *spec* as settled without resetting anything."""
        self._snapshot = spec.filter_snapshot()

    def settle(self, spec: QuerySpec) -> QuerySpec:
        """Return *spec*, moved to page 1 if its filters changed since the last settle."""
        snapshot = spec.filter_snapshot()
        previous, self._snapshot = self._snapshot, snapshot

        if previous is None or previous == snapshot or spec.page == 1:
            return spec

        changed = [name for name, old, new in zip(FILTER_FIELDS, previous, snapshot) if old != new]
        logger.debug(f"Filters changed ({', '.join(changed)}); resetting page {spec.page} to 1")
        return replace(spec, page=1)
