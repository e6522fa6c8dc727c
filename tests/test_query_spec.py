"""
Tests for the Query Spec value type and its coupling rules.
"""

from dataclasses import replace

import pytest

from app.search.query_spec import (
    DEFAULT_AVAILABILITY,
    DEFAULT_SPEC,
    PriceBand,
    QuerySpec,
    SortKey,
    apply_couplings,
)


@pytest.mark.unit
class TestQuerySpec:
    """Tests for QuerySpec construction."""

    def test_lists_become_frozensets(self):
        spec = QuerySpec(types=["a", "a", "b"])
        assert spec.types == frozenset({"a", "b"})

    def test_string_enums_are_coerced(self):
        spec = QuerySpec(price_band="low", sort_key="rating")
        assert spec.price_band is PriceBand.LOW
        assert spec.sort_key is SortKey.RATING

    @pytest.mark.parametrize("page", [0, -1, True, "2"])
    def test_invalid_page_raises(self, page):
        with pytest.raises(ValueError):
            QuerySpec(page=page)

    def test_invalid_availability_raises(self):
        with pytest.raises(ValueError):
            QuerySpec(availability={"maybe"})

    def test_both_availability_values_raise(self):
        with pytest.raises(ValueError):
            QuerySpec(availability={"yes", "no"})

    @pytest.mark.parametrize(
        "band,bounds",
        [
            (PriceBand.NONE, (None, None)),
            (PriceBand.LOW, (None, 1200)),
            (PriceBand.MEDIUM, (1201, 1800)),
            (PriceBand.HIGH, (1801, None)),
        ],
    )
    def test_price_bounds(self, band, bounds):
        assert QuerySpec(price_band=band).price_bounds == bounds

    def test_changed_fields(self):
        a = QuerySpec(region="Toronto", page=2)
        b = QuerySpec(region="York", page=2, types={"x"})
        assert a.changed_fields(b) == {"region", "types"}

    def test_filter_snapshot_ignores_page(self):
        assert QuerySpec(page=1).filter_snapshot() == QuerySpec(page=7).filter_snapshot()


@pytest.mark.unit
class TestCouplings:
    """Tests for apply_couplings()."""

    def test_clearing_region_clears_ward(self):
        previous = QuerySpec(region="Durham", ward="Whitby")
        settled = apply_couplings(previous, replace(previous, region=""), "Durham")
        assert settled.ward == ""

    def test_switching_region_clears_ward(self):
        previous = QuerySpec(region="Durham", ward="Whitby")
        settled = apply_couplings(previous, replace(previous, region="York"), "Durham")
        assert settled.region == "York"
        assert settled.ward == ""

    def test_same_region_keeps_ward(self):
        previous = QuerySpec(region="Durham", ward="Whitby")
        settled = apply_couplings(previous, replace(previous, price_band=PriceBand.LOW), "Durham")
        assert settled.ward == "Whitby"

    def test_choosing_ward_and_region_together_keeps_ward(self):
        settled = apply_couplings(DEFAULT_SPEC, QuerySpec(region="Durham", ward="Whitby"), "")
        assert settled.ward == "Whitby"

    def test_clearing_age_ranges_clears_availability(self):
        previous = QuerySpec(age_ranges={"Infant"}, availability={"yes"})
        settled = apply_couplings(previous, replace(previous, age_ranges=frozenset()), None)
        assert settled.availability == frozenset()

    def test_first_age_range_defaults_availability(self):
        settled = apply_couplings(DEFAULT_SPEC, QuerySpec(age_ranges={"Toddler"}), None)
        assert settled.availability == DEFAULT_AVAILABILITY

    def test_explicit_availability_is_kept(self):
        spec = QuerySpec(age_ranges={"Toddler"}, availability={"yes"})
        assert apply_couplings(DEFAULT_SPEC, spec, None) is spec
