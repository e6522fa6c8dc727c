"""Bidirectional mapping between :class:`QuerySpec` and URL query parameters.

The codec works on already-decoded strings; percent-encoding is done by
:func:`to_query_string` (the transport) and undone by
:func:`from_query_string`.  Default values are omitted on encode so shared
links stay short, which means decode must treat a missing key as default.

Malformed values never raise: each field falls back to its default and the
problem is logged at debug level.
"""

import logging
from typing import Mapping
from urllib.parse import parse_qsl, unquote, unquote_plus, urlencode

from app.search.query_spec import AVAILABILITY_VALUES, PriceBand, QuerySpec, SortKey, SortOrder

logger = logging.getLogger(__name__)

#: Flat, string-keyed projection of a QuerySpec.
ParamMap = dict[str, str]

#: URL key for each QuerySpec field, in the order links are written.
PARAM_KEYS = {
    "free_text": "q",
    "region": "region",
    "ward": "ward",
    "price_band": "priceRange",
    "types": "types",
    "age_ranges": "ageRange",
    "program_ages": "programAges",
    "availability": "availability",
    "cwelcc_only": "cwelcc",
    "subsidy_only": "subsidy",
    "sort_key": "sortBy",
    "sort_order": "sortOrder",
    "page": "page",
}

_TRUE_VALUES = {"true", "1", "yes", "on"}


def _join(values: frozenset) -> str:
    # Provider type names may themselves contain commas.
    return ",".join(sorted(v.replace("%", "%25").replace(",", "%2C") for v in values))


def _split(raw: str) -> frozenset:
    return frozenset(unquote(part.strip()) for part in raw.split(",") if part.strip())


def _escape_place(value: str) -> str:
    # Decode turns "+" into a space and undoes percent escapes; protect literal ones.
    return value.replace("%", "%25").replace("+", "%2B")


def _normalize_place(raw: str) -> str:
    """Percent-decode a region/ward value and collapse ``+`` to spaces."""
    return " ".join(unquote_plus(raw).split())


def encode(spec: QuerySpec) -> ParamMap:
    """Project *spec* onto URL parameters, omitting default values."""
    params: ParamMap = {}
    if spec.free_text:
        params["q"] = spec.free_text
    if spec.region:
        params["region"] = _escape_place(spec.region)
    if spec.ward:
        params["ward"] = _escape_place(spec.ward)
    if spec.price_band is not PriceBand.NONE:
        params["priceRange"] = spec.price_band.value
    if spec.types:
        params["types"] = _join(spec.types)
    if spec.age_ranges:
        params["ageRange"] = _join(spec.age_ranges)
    if spec.program_ages:
        params["programAges"] = _join(spec.program_ages)
    if spec.availability:
        params["availability"] = _join(spec.availability)
    if spec.cwelcc_only:
        params["cwelcc"] = "true"
    if spec.subsidy_only:
        params["subsidy"] = "true"
    if spec.sort_key is not SortKey.NAME:
        params["sortBy"] = spec.sort_key.value
    if spec.sort_order is not SortOrder.ASC:
        params["sortOrder"] = spec.sort_order.value
    if spec.page != 1:
        params["page"] = str(spec.page)
    return params


def _decode_enum(enum_cls, raw: str | None, default):
    if not raw:
        return default
    try:
        value = enum_cls(raw.strip().lower())
    except ValueError:
        logger.debug(f"Ignoring unknown {enum_cls.__name__} value {raw!r}")
        return default
    return value


def _decode_page(raw: str | None) -> int:
    if not raw:
        return 1
    try:
        page = int(raw.strip())
    except ValueError:
        logger.debug(f"Ignoring non-numeric page {raw!r}")
        return 1
    return page if page >= 1 else 1


def _decode_availability(raw: str | None) -> frozenset:
    if not raw:
        return frozenset()
    values = [v for v in (part.strip().lower() for part in raw.split(",")) if v in AVAILABILITY_VALUES]
    # At most one of yes/no survives; the first one listed wins.
    return frozenset(values[:1])


def decode(params: Mapping[str, str]) -> QuerySpec:
    """Build a QuerySpec from URL parameters, substituting defaults for bad input."""
    region = _normalize_place(params.get("region") or "")
    ward = _normalize_place(params.get("ward") or "")
    price_band = _decode_enum(PriceBand, params.get("priceRange"), PriceBand.NONE)
    age_ranges = _split(params.get("ageRange") or "")
    # Availability only filters within the selected age ranges.
    availability = _decode_availability(params.get("availability")) if age_ranges else frozenset()

    return QuerySpec(
        free_text=params.get("q") or "",
        region=region,
        ward=ward,
        price_band=price_band,
        types=_split(params.get("types") or ""),
        age_ranges=age_ranges,
        program_ages=_split(params.get("programAges") or ""),
        availability=availability,
        cwelcc_only=(params.get("cwelcc") or "").strip().lower() in _TRUE_VALUES,
        subsidy_only=(params.get("subsidy") or "").strip().lower() in _TRUE_VALUES,
        sort_key=_decode_enum(SortKey, params.get("sortBy"), SortKey.NAME),
        sort_order=_decode_enum(SortOrder, params.get("sortOrder"), SortOrder.ASC),
        page=_decode_page(params.get("page")),
    )


def params_equal(a: Mapping[str, str], b: Mapping[str, str]) -> bool:
    """Order-independent comparison of two parameter maps."""
    return set(a.items()) == set(b.items())


def from_query_string(query: str) -> ParamMap:
    """Parse a raw query string; the first occurrence of a repeated key wins."""
    params: ParamMap = {}
    for key, value in parse_qsl(query.lstrip("?"), keep_blank_values=False):
        params.setdefault(key, value)
    return params


def to_query_string(params: Mapping[str, str]) -> str:
    """Percent-encode *params* in a stable order (the order of :data:`PARAM_KEYS`)."""
    order = {key: index for index, key in enumerate(PARAM_KEYS.values())}
    items = sorted(params.items(), key=lambda item: (order.get(item[0], len(order)), item[0]))
    return urlencode(items)


def search_url(params: Mapping[str, str], path: str = "/search") -> str:
    """Full relative URL of the search page for *params*."""
    query = to_query_string(params)
    return f"{path}?{query}" if query else path
