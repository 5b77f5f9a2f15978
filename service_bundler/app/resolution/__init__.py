"""
Version resolution package.

Validates registry metadata and maps a requested tag, exact version or npm
range to the concrete version a bundle is built and cached under.
"""

from .models import PackageMetadata, ResolvedVersion
from .version_resolver import VersionResolver, find_version, canonical_url

__all__ = [
    "PackageMetadata",
    "ResolvedVersion",
    "VersionResolver",
    "find_version",
    "canonical_url",
]
