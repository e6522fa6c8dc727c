"""
Parent-side collections shown around the search results.

* recently viewed daycares (cookie session, newest first, capped)
* the compare list (cookie session, toggle membership)
* favorites (database, members only)
* contact logs (database, members only)
"""

import logging
from typing import Annotated, Any, MutableMapping, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.auth import require_member
from app.config import settings
from app.database import get_db
from app.models import ContactLog, Favorite
from app.search.tiering import AuthSignal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["collections"])

DbSession = Annotated[Session, Depends(get_db)]
Member = Annotated[AuthSignal, Depends(require_member)]

RECENTLY_VIEWED_SESSION_KEY = "recently_viewed"
COMPARE_SESSION_KEY = "compare"

#: Item fields kept in the session; the cookie has to stay small.
RECENTLY_VIEWED_FIELDS = ("id", "name", "region", "city", "price", "priceString", "rating")

CONTACT_METHODS = frozenset({"phone", "email", "visit", "other"})

MAX_NOTES_LENGTH = 2000


def remember_viewed(
    session: MutableMapping[str, Any], item: dict[str, Any], limit: Optional[int] = None
) -> list[dict[str, Any]]:
    """Put *item* at the front of the recently viewed list, dropping duplicates and overflow."""
    limit = settings.recently_viewed_limit if limit is None else limit
    item_id = str(item.get("id") or "")
    if not item_id:
        return list(session.get(RECENTLY_VIEWED_SESSION_KEY) or [])

    entry = {key: item[key] for key in RECENTLY_VIEWED_FIELDS if item.get(key) is not None}
    entry["id"] = item_id
    existing = [e for e in session.get(RECENTLY_VIEWED_SESSION_KEY) or [] if isinstance(e, dict)]
    updated = [entry] + [e for e in existing if e.get("id") != item_id]
    session[RECENTLY_VIEWED_SESSION_KEY] = updated[:limit]
    return session[RECENTLY_VIEWED_SESSION_KEY]


def recently_viewed(session: MutableMapping[str, Any]) -> list[dict[str, Any]]:
    return [e for e in session.get(RECENTLY_VIEWED_SESSION_KEY) or [] if isinstance(e, dict)]


def compare_ids(session: MutableMapping[str, Any]) -> list[str]:
    return [str(i) for i in session.get(COMPARE_SESSION_KEY) or []]


def toggle_compare(session: MutableMapping[str, Any], daycare_id: str) -> list[str]:
    ids = compare_ids(session)
    if daycare_id in ids:
        ids.remove(daycare_id)
    else:
        ids.append(daycare_id)
    session[COMPARE_SESSION_KEY] = ids
    return ids


# ----------------------------------------------------------------------
# recently viewed
# ----------------------------------------------------------------------


@router.get("/recently-viewed")
def list_recently_viewed(request: Request):
    """Daycares the visitor opened recently, newest first."""
    return recently_viewed(request.session)


@router.post("/recently-viewed")
def add_recently_viewed(request: Request, item: dict = Body(...)):
    """Record a viewed daycare; the body is the daycare object (``id`` required)."""
    if not isinstance(item.get("id"), (str, int)) or not str(item.get("id")):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="id is required")
    return remember_viewed(request.session, item)


# ----------------------------------------------------------------------
# compare list
# ----------------------------------------------------------------------


@router.get("/compare")
def list_compare(request: Request):
    return {"ids": compare_ids(request.session)}


@router.post("/compare/{daycare_id}")
def toggle_compare_item(daycare_id: str, request: Request):
    """Add *daycare_id* to the compare list, or remove it if already there."""
    ids = toggle_compare(request.session, daycare_id)
    return {"ids": ids, "selected": daycare_id in ids}


@router.delete("/compare")
def clear_compare(request: Request):
    request.session.pop(COMPARE_SESSION_KEY, None)
    return {"ids": []}


# ----------------------------------------------------------------------
# favorites
# ----------------------------------------------------------------------


def _serialize_favorite(f: Favorite) -> dict:
    return {
        "daycare_id": f.daycare_id,
        "daycare_name": f.daycare_name,
        "created_at": f.created_at.isoformat() if f.created_at else None,
    }


@router.get("/favorites")
def list_favorites(member: Member, db: DbSession):
    """List the signed-in parent's favorites, newest first."""
    favorites = (
        db.query(Favorite).filter(Favorite.user_id == member.user_id).order_by(Favorite.id.desc()).all()
    )
    return [_serialize_favorite(f) for f in favorites]


@router.post("/favorites", status_code=status.HTTP_201_CREATED)
def add_favorite(
    member: Member,
    db: DbSession,
    daycare_id: str = Body(..., embed=True),
    daycare_name: str | None = Body(None, embed=True),
):
    """Star a daycare.

    Raises:
        HTTPException 409: If the daycare is already a favorite.
    """
    user_id = member.user_id
    existing = db.query(Favorite).filter(Favorite.user_id == user_id, Favorite.daycare_id == daycare_id).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already in favorites")

    favorite = Favorite(user_id=user_id, daycare_id=daycare_id, daycare_name=daycare_name)
    try:
        db.add(favorite)
        db.commit()
        db.refresh(favorite)
    except Exception as exc:
        db.rollback()
        logger.exception(f"Failed to add favorite for user={user_id}: {exc}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save favorite")

    logger.info(f"Favorite added: user={user_id}, daycare={daycare_id}")
    return _serialize_favorite(favorite)


@router.delete("/favorites/{daycare_id}")
def remove_favorite(daycare_id: str, member: Member, db: DbSession):
    favorite = (
        db.query(Favorite).filter(Favorite.user_id == member.user_id, Favorite.daycare_id == daycare_id).first()
    )
    if not favorite:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Favorite not found")
    db.delete(favorite)
    db.commit()
    logger.info(f"Favorite removed: user={member.user_id}, daycare={daycare_id}")
    return {"status": "deleted", "daycare_id": daycare_id}


# ----------------------------------------------------------------------
# contact logs
# ----------------------------------------------------------------------


def _serialize_contact_log(log: ContactLog) -> dict:
    return {
        "id": log.id,
        "daycare_id": log.daycare_id,
        "daycare_name": log.daycare_name,
        "contact_method": log.contact_method,
        "notes": log.notes,
        "created_at": log.created_at.isoformat() if log.created_at else None,
    }


@router.get("/contact-logs")
def list_contact_logs(member: Member, db: DbSession, daycare_id: str | None = None):
    """List contact logs, optionally for one daycare."""
    query = db.query(ContactLog).filter(ContactLog.user_id == member.user_id)
    if daycare_id:
        query = query.filter(ContactLog.daycare_id == daycare_id)
    return [_serialize_contact_log(log) for log in query.order_by(ContactLog.id.desc()).all()]


@router.post("/contact-logs", status_code=status.HTTP_201_CREATED)
def add_contact_log(
    member: Member,
    db: DbSession,
    daycare_id: str = Body(..., embed=True),
    daycare_name: str | None = Body(None, embed=True),
    contact_method: str = Body("phone", embed=True),
    notes: str | None = Body(None, embed=True),
):
    """Record that the parent contacted a daycare.

    Raises:
        HTTPException 422: If the contact method is unknown or the notes are too long.
    """
    if contact_method not in CONTACT_METHODS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"contact_method must be one of {', '.join(sorted(CONTACT_METHODS))}",
        )
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"notes must be at most {MAX_NOTES_LENGTH} characters",
        )

    log = ContactLog(
        user_id=member.user_id,
        daycare_id=daycare_id,
        daycare_name=daycare_name,
        contact_method=contact_method,
        notes=notes,
    )
    try:
        db.add(log)
        db.commit()
        db.refresh(log)
    except Exception as exc:
        db.rollback()
        logger.exception(f"Failed to save contact log for user={member.user_id}: {exc}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save contact log")

    return _serialize_contact_log(log)
