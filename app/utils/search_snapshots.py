"""
Durable last-search snapshots for signed-in parents.

The cookie session already remembers the last search for the current browser
session; this store keeps a copy in the database so a member returning on
another day lands on the search they left.  Failures are logged and treated
as "no snapshot": losing a convenience must never break the search page.
"""

import logging
from typing import Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import SearchSnapshot
from app.search.url_codec import ParamMap, from_query_string, to_query_string

logger = logging.getLogger(__name__)


class DbSnapshotStore:
    """Snapshot store backed by the ``search_snapshots`` table.

    Args:
        db: Database session of the current request.
        user_id: Owner of the snapshot.
    """

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def _row(self) -> Optional[SearchSnapshot]:
        return self.db.query(SearchSnapshot).filter(SearchSnapshot.user_id == self.user_id).first()

    def load(self) -> Optional[ParamMap]:
        try:
            row = self._row()
        except SQLAlchemyError as exc:
            logger.warning(f"Could not load search snapshot for user={self.user_id}: {exc}")
            return None
        if row is None or not row.query_string:
            return None
        return from_query_string(row.query_string) or None

    def save(self, params: Mapping[str, str]) -> None:
        query_string = to_query_string(params)
        try:
            row = self._row()
            if row is None:
                self.db.add(SearchSnapshot(user_id=self.user_id, query_string=query_string))
            elif row.query_string != query_string:
                row.query_string = query_string
            else:
                return
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(f"Could not save search snapshot for user={self.user_id}: {exc}")

    def clear(self) -> None:
        try:
            deleted = self.db.query(SearchSnapshot).filter(SearchSnapshot.user_id == self.user_id).delete()
            if deleted:
                self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(f"Could not clear search snapshot for user={self.user_id}: {exc}")
