"""
Package specifier parsing.

One canonical query serialization lives here; both cache keys and redirect
URLs are built from it.
"""

from .parser import PackageSpecifier, QueryParams, QueryValue, parse_specifier, parse_query, canonical_query

__all__ = [
    "PackageSpecifier",
    "QueryParams",
    "QueryValue",
    "parse_specifier",
    "parse_query",
    "canonical_query",
]
