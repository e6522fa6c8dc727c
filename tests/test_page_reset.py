"""
Tests for the page-reset policy (app/search/page_reset.py).
"""

from dataclasses import replace

import pytest

from app.search.page_reset import PageResetPolicy
from app.search.query_spec import PriceBand, QuerySpec, SortKey


@pytest.fixture
def policy():
    p = PageResetPolicy()
    p.prime(QuerySpec(region="Toronto", page=3))
    return p


@pytest.mark.unit
class TestPageResetPolicy:
    """Tests for PageResetPolicy.settle()."""

    def test_filter_change_returns_to_first_page(self, policy):
        settled = policy.settle(QuerySpec(region="Toronto", price_band=PriceBand.LOW, page=3))
        assert settled.page == 1

    def test_sort_change_returns_to_first_page(self, policy):
        settled = policy.settle(QuerySpec(region="Toronto", sort_key=SortKey.RATING, page=3))
        assert settled.page == 1

    def test_page_only_change_does_not_reset(self, policy):
        settled = policy.settle(QuerySpec(region="Toronto", page=4))
        assert settled.page == 4

    def test_set_order_is_irrelevant(self):
        policy = PageResetPolicy()
        policy.prime(QuerySpec(types=["a", "b"], page=2))
        assert policy.settle(QuerySpec(types=["b", "a"], page=2)).page == 2

    def test_snapshot_updates_after_every_settle(self, policy):
        changed = QuerySpec(region="York", page=3)
        assert policy.settle(changed).page == 1
        # Same filters again, now at page 2: no further reset
        assert policy.settle(replace(changed, page=2)).page == 2

    def test_first_settle_without_prime_never_resets(self):
        assert PageResetPolicy().settle(QuerySpec(region="York", page=5)).page == 5

    def test_change_on_first_page_is_returned_unchanged(self, policy):
        spec = QuerySpec(region="York")
        assert policy.settle(spec) is spec
