"""
Tests for the guest/member tiering policy (app/search/tiering.py).
"""

from urllib.parse import parse_qs, urlparse

import pytest

from app.search.query_spec import QuerySpec
from app.search.tiering import (
    GUEST_PAGE_SIZE,
    MEMBER_PAGE_SIZE,
    REDIRECT_SESSION_KEY,
    AuthSignal,
    GatedAction,
    TierDecision,
    decide_tier,
    first_page_only,
    is_allowed,
    login_redirect,
    login_url,
    safe_return_target,
    summarize,
)


@pytest.mark.unit
class TestDecideTier:
    """Tests for decide_tier()."""

    def test_guest(self):
        assert decide_tier(AuthSignal(user=None)) == TierDecision(page_size=GUEST_PAGE_SIZE, is_guest=True)

    def test_member(self):
        tier = decide_tier(AuthSignal(user={"email": "a@example.com"}))
        assert tier == TierDecision(page_size=MEMBER_PAGE_SIZE, is_guest=False)

    def test_pending_has_no_tier(self):
        assert decide_tier(AuthSignal(user=None, is_loading=True)) is None

    def test_page_sizes(self):
        assert GUEST_PAGE_SIZE == 4
        assert MEMBER_PAGE_SIZE == 15

    def test_user_id_preference(self):
        assert AuthSignal(user={"preferred_username": "pat", "email": "p@x"}).user_id == "pat"
        assert AuthSignal(user={"email": "p@x"}).user_id == "p@x"
        assert AuthSignal(user={"name": "Pat"}).user_id == "anonymous"
        assert AuthSignal(user=None).user_id is None


@pytest.mark.unit
class TestSummarize:
    """Tests for summarize()."""

    def test_guest_with_more_results(self):
        summary = summarize(total=37, shown=4, tier=TierDecision(4, True))
        assert summary.prompt_signup
        assert summary.has_more
        assert summary.hidden == 33
        assert summary.message == "Showing 4 of 37, sign up to see all"

    def test_guest_with_few_results(self):
        summary = summarize(total=3, shown=3, tier=TierDecision(4, True))
        assert not summary.prompt_signup
        assert summary.hidden == 0
        assert summary.message == "Showing 3 of 3"

    def test_member_has_no_signup_prompt(self):
        summary = summarize(total=37, shown=15, tier=TierDecision(15, False))
        assert not summary.prompt_signup
        assert summary.has_more
        assert summary.hidden == 0

    def test_member_below_page_size(self):
        assert not summarize(total=15, shown=15, tier=TierDecision(15, False)).has_more


@pytest.mark.unit
class TestGatedActions:
    """Tests for is_allowed() and the login redirect."""

    @pytest.mark.parametrize("action", list(GatedAction))
    def test_guest_is_refused(self, action):
        assert not is_allowed(action, TierDecision(4, True))

    @pytest.mark.parametrize("action", list(GatedAction))
    def test_member_is_allowed(self, action):
        assert is_allowed(action, TierDecision(15, False))

    def test_pending_is_refused(self):
        assert not is_allowed(GatedAction.CHANGE_PAGE, None)

    def test_login_redirect_carries_full_search_url(self):
        session = {}
        url = login_redirect("/search?region=Toronto&sortBy=price&sortOrder=desc", session)
        parsed = urlparse(url)
        assert parsed.path == "/login"
        assert parse_qs(parsed.query)["redirect"] == ["/search?region=Toronto&sortBy=price&sortOrder=desc"]
        assert session[REDIRECT_SESSION_KEY] == "/search?region=Toronto&sortBy=price&sortOrder=desc"

    def test_login_url_has_no_side_effects(self):
        assert login_url("/search") == "/login?redirect=%2Fsearch"

    @pytest.mark.parametrize(
        "target",
        ["https://evil.example/", "//evil.example/x", "/\\evil", "", None, "search"],
    )
    def test_unsafe_targets_are_replaced(self, target):
        assert safe_return_target(target) == "/search"

    def test_local_target_is_kept(self):
        assert safe_return_target("/search?page=2") == "/search?page=2"


@pytest.mark.unit
class TestFirstPageOnly:
    """Tests for first_page_only()."""

    def test_guest_is_pinned_to_first_page(self):
        spec = QuerySpec(region="Toronto", page=7)
        assert first_page_only(spec, decide_tier(AuthSignal(user=None))) == QuerySpec(region="Toronto")

    def test_member_keeps_page(self):
        spec = QuerySpec(region="Toronto", page=7)
        assert first_page_only(spec, decide_tier(AuthSignal(user={"preferred_username": "pat"}))) is spec

    def test_first_page_is_untouched(self):
        spec = QuerySpec(region="Toronto")
        assert first_page_only(spec, decide_tier(AuthSignal(user=None))) is spec

    def test_pending_visitor_keeps_page(self):
        spec = QuerySpec(page=3)
        assert first_page_only(spec, None) is spec
