"""
Content-address derivation for bundles.
"""

import hashlib
from typing import Optional

from service_bundler.app.specifier import QueryParams, canonical_query


def canonical_request(name: str, version: str, subpath: Optional[str], query: QueryParams) -> str:
    """Normalized request string, e.g. `react@16.8.0_umd_react.js?dev=true`."""
    canonical = f"{name}@{version}"
    if subpath:
        canonical += "_" + subpath.replace("/", "_")
    return canonical + canonical_query(query)


def derive_key(name: str, version: str, subpath: Optional[str], query: QueryParams) -> str:
    """SHA-1 hex digest of the canonical request string."""
    return hashlib.sha1(canonical_request(name, version, subpath, query).encode("utf-8")).hexdigest()


def bundle_name(key: str, name: str, version: str) -> str:
    """Object name the cache store files a bundle under."""
    return f"{name}@{version}/{key}.js"
