"""Canonical representation of what a parent is searching for.

A :class:`QuerySpec` is an immutable value: every mutation produces a new
instance via :func:`dataclasses.replace`, which makes "what changed between
two settles" a plain field-by-field comparison.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Optional


class PriceBand(str, Enum):
    """Monthly price bands offered in the filter panel."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SortKey(str, Enum):
    NAME = "name"
    RATING = "rating"
    PRICE = "price"
    DISTANCE = "distance"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


#: Monthly fee bounds (min, max) for each band; ``None`` means unbounded.
PRICE_BAND_BOUNDS: dict[PriceBand, tuple[Optional[int], Optional[int]]] = {
    PriceBand.LOW: (None, 1200),
    PriceBand.MEDIUM: (1201, 1800),
    PriceBand.HIGH: (1801, None),
}

#: Values accepted in the availability (vacancy) filter.
AVAILABILITY_VALUES = frozenset({"yes", "no"})

#: Availability chosen automatically once an age range is selected.
DEFAULT_AVAILABILITY = frozenset({"no"})


@dataclass(frozen=True)
class QuerySpec:
    free_text: str = ""
    region: str = ""
    ward: str = ""
    price_band: PriceBand = PriceBand.NONE
    types: frozenset[str] = field(default_factory=frozenset)
    age_ranges: frozenset[str] = field(default_factory=frozenset)
    program_ages: frozenset[str] = field(default_factory=frozenset)
    availability: frozenset[str] = field(default_factory=frozenset)
    cwelcc_only: bool = False
    subsidy_only: bool = False
    sort_key: SortKey = SortKey.NAME
    sort_order: SortOrder = SortOrder.ASC
    page: int = 1

    def __post_init__(self):
        # Accept any iterable for the set-valued fields so callers can pass lists.
        for name in SET_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value))
        object.__setattr__(self, "price_band", PriceBand(self.price_band))
        object.__setattr__(self, "sort_key", SortKey(self.sort_key))
        object.__setattr__(self, "sort_order", SortOrder(self.sort_order))

        if not isinstance(self.page, int) or isinstance(self.page, bool) or self.page < 1:
            raise ValueError(f"page must be an integer >= 1, got {self.page!r}")
        if not self.availability <= AVAILABILITY_VALUES or len(self.availability) > 1:
            raise ValueError(f"availability must hold at most one of yes/no, got {sorted(self.availability)}")

    @property
    def price_bounds(self) -> tuple[Optional[int], Optional[int]]:
        """Return the (min, max) monthly fee bounds for the selected band."""
        return PRICE_BAND_BOUNDS.get(self.price_band, (None, None))

    def filter_snapshot(self) -> tuple:
        """Every filter and sort field except ``page``, in declaration order."""
        return tuple(getattr(self, name) for name in FILTER_FIELDS)

    def changed_fields(self, other: "QuerySpec") -> set[str]:
        """Names of the fields whose values differ between *self* and *other*."""
        return {f.name for f in fields(self) if getattr(self, f.name) != getattr(other, f.name)}


#: Fields holding unordered, duplicate-free collections.
SET_FIELDS = ("types", "age_ranges", "program_ages", "availability")

#: Fields whose change invalidates the current page of results.
FILTER_FIELDS = tuple(f.name for f in fields(QuerySpec) if f.name != "page")

DEFAULT_SPEC = QuerySpec()


def apply_couplings(previous: QuerySpec, spec: QuerySpec, last_known_region: Optional[str]) -> QuerySpec:
    """Enforce the cross-field rules after a user-initiated change.

    * clearing ``region`` clears ``ward``;
    * switching from one non-empty region to another clears ``ward``;
    * no age range means no availability filter;
    * the first age range selection defaults availability to ``{"no"}``.

    Args:
        previous: The Query Spec as of the previous settle.
        spec: The Query Spec with the user's changes merged in.
        last_known_region: Region recorded at the previous settle, or None
            before the first settle.

    Returns:
        A spec satisfying all coupling invariants.
    """
    updates: dict = {}

    old_region = previous.region if last_known_region is None else last_known_region
    if spec.ward:
        if not spec.region:
            updates["ward"] = ""
        elif old_region and spec.region != old_region:
            updates["ward"] = ""

    if not spec.age_ranges:
        if spec.availability:
            updates["availability"] = frozenset()
    elif not spec.availability:
        updates["availability"] = DEFAULT_AVAILABILITY

    return replace(spec, **updates) if updates else spec
