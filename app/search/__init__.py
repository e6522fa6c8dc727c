"""
Search-state synchronization engine for the daycare directory.
"""

# Make the value types and the codec available through the package
from app.search.query_spec import DEFAULT_SPEC, PriceBand, QuerySpec, SortKey, SortOrder
from app.search.url_codec import decode, encode

__all__ = ["DEFAULT_SPEC", "PriceBand", "QuerySpec", "SortKey", "SortOrder", "decode", "encode"]
