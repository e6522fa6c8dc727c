"""Guest versus member access policy for search results.

Every guest check in the application goes through this module: page size,
the "sign up to see all" banner, and the login redirect that carries the
current search back after authentication.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, MutableMapping, Optional
from urllib.parse import quote

from app.search.query_spec import QuerySpec

logger = logging.getLogger(__name__)

GUEST_PAGE_SIZE = 4
MEMBER_PAGE_SIZE = 15

#: Session key holding the return target when the ``redirect`` query
#: parameter gets lost between login hops.
REDIRECT_SESSION_KEY = "redirect_after_login"

LOGIN_PATH = "/login"


class GatedAction(str, Enum):
    """Actions only members may perform."""

    CHANGE_PAGE = "change_page"
    ADD_FAVORITE = "add_favorite"
    LOG_CONTACT = "log_contact"


@dataclass(frozen=True)
class AuthSignal:
    """What the search core knows about authentication."""

    user: Optional[dict[str, Any]] = None
    is_loading: bool = False

    @property
    def is_pending(self) -> bool:
        return self.is_loading

    @property
    def is_guest(self) -> bool:
        return not self.user and not self.is_loading

    @property
    def user_id(self) -> Optional[str]:
        if not self.user:
            return None
        return self.user.get("preferred_username") or self.user.get("email") or self.user.get("id") or "anonymous"


@dataclass(frozen=True)
class TierDecision:
    page_size: int
    is_guest: bool


@dataclass(frozen=True)
class ResultSummary:
    """Counts shown above the result list."""

    shown: int
    total: int
    hidden: int
    has_more: bool
    prompt_signup: bool

    @property
    def message(self) -> str:
        if self.prompt_signup:
            return f"Showing {self.shown} of {self.total}, sign up to see all"
        return f"Showing {self.shown} of {self.total}"


def decide_tier(
    signal: AuthSignal,
    guest_page_size: int = GUEST_PAGE_SIZE,
    member_page_size: int = MEMBER_PAGE_SIZE,
) -> Optional[TierDecision]:
    """Pick the page size for *signal*; ``None`` while authentication is still loading."""
    if signal.is_pending:
        return None
    if signal.is_guest:
        return TierDecision(page_size=guest_page_size, is_guest=True)
    return TierDecision(page_size=member_page_size, is_guest=False)


def summarize(total: int, shown: int, tier: TierDecision) -> ResultSummary:
    """Build the "showing N of TOTAL" summary for a result page."""
    has_more = total > tier.page_size
    prompt_signup = tier.is_guest and has_more
    hidden = max(total - shown, 0) if prompt_signup else 0
    return ResultSummary(shown=shown, total=total, hidden=hidden, has_more=has_more, prompt_signup=prompt_signup)


def is_allowed(action: GatedAction, tier: Optional[TierDecision]) -> bool:
    """Members may do anything; guests and pending visitors may not perform gated actions."""
    if tier is not None and not tier.is_guest:
        return True
    logger.debug(f"Gated action {action.value} refused for a guest or pending visitor")
    return False


def first_page_only(spec: QuerySpec, tier: Optional[TierDecision]) -> QuerySpec:
    """Pin a guest's search to page 1; later pages are for members."""
    if tier is not None and tier.is_guest and spec.page != 1:
        logger.debug(f"Guest asked for page {spec.page}; serving page 1")
        return replace(spec, page=1)
    return spec


def safe_return_target(target: Optional[str], default: str = "/search") -> str:
    """Accept only local absolute paths as post-login destinations."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    return target


def login_url(return_to: str) -> str:
    """Login URL that brings the visitor back to *return_to* afterwards."""
    return f"{LOGIN_PATH}?redirect={quote(safe_return_target(return_to), safe='')}"


def login_redirect(return_to: str, session: Optional[MutableMapping[str, Any]] = None) -> str:
    """Build the login URL for a guest, remembering *return_to* in the session as well.

    Args:
        return_to: Full relative URL of the current search, e.g.
            ``/search?region=Toronto``.
        session: Session mapping used as the fallback store.

    Returns:
        The login URL carrying *return_to* in its ``redirect`` parameter.
    """
    target = safe_return_target(return_to)
    if session is not None:
        session[REDIRECT_SESSION_KEY] = target
    logger.info(f"Guest sent to login, returning to {target}")
    return login_url(target)
