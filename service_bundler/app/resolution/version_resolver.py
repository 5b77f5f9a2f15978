"""
Tag to version resolution with canonicalizing redirects.

Bundles are only ever built and cached for concrete versions. A request for
a floating tag (`latest`, `^1.2.0`, ...) is answered with a redirect to the
concrete version it currently resolves to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import semantic_version
from pydantic import ValidationError

from shared.errors import InvalidPackageError, InvalidTagError
from shared.logging import get_logger
from service_bundler.app.specifier import PackageSpecifier, canonical_query

from .models import PackageMetadata, ResolvedVersion

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from service_bundler.app.adapters.registry_client import RegistryClient


def find_version(metadata: PackageMetadata, tag: str) -> Optional[str]:
    """
    Map `tag` to a version listed in `metadata`.

    Lookup order is exact version, then dist-tag, then the highest listed
    version satisfying `tag` read as an npm range. Returns None when nothing
    matches.
    """
    if tag in metadata.versions:
        return tag

    if tag in metadata.dist_tags:
        return metadata.dist_tags[tag]

    try:
        spec = semantic_version.NpmSpec(tag)
    except ValueError:
        return None

    candidates = {}
    for listed in metadata.versions:
        if semantic_version.validate(listed):
            candidates[semantic_version.Version(listed)] = listed

    best = spec.select(candidates)
    return candidates[best] if best is not None else None


def canonical_url(package_name: str, version: str, specifier: PackageSpecifier) -> str:
    """Path the client is redirected to for a concrete version."""
    url = f"/{package_name}@{version}"
    if specifier.subpath:
        url += f"/{specifier.subpath}"
    return url + canonical_query(specifier.query)


class VersionResolver:
    """Resolves specifiers against registry metadata."""

    def __init__(self, registry_client: "RegistryClient"):
        self.registry_client = registry_client
        self.logger = get_logger("bundler.resolver")

    async def resolve(self, specifier: PackageSpecifier) -> ResolvedVersion:
        qualified = specifier.qualified_name
        payload = await self.registry_client.fetch_metadata(qualified)

        try:
            metadata = PackageMetadata.model_validate(payload)
        except ValidationError as exc:
            self.logger.warning("Registry returned invalid metadata", package=qualified, errors=exc.error_count())
            raise InvalidPackageError(qualified) from exc

        version = find_version(metadata, specifier.tag)
        if version is None or not semantic_version.validate(version):
            self.logger.info("Tag did not resolve to a version", package=qualified, tag=specifier.tag, resolved=version)
            raise InvalidTagError(qualified, specifier.tag, details={"resolved": version})

        resolved = ResolvedVersion(
            package_name=metadata.name,
            version=version,
            is_canonical_request=(version == specifier.tag),
        )
        self.logger.debug(
            "Resolved version",
            package=qualified,
            tag=specifier.tag,
            version=version,
            canonical=resolved.is_canonical_request,
        )
        return resolved
