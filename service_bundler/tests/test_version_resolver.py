"""
Unit tests for version resolution.
"""

import pytest
from unittest.mock import AsyncMock

from service_bundler.app.resolution import PackageMetadata, VersionResolver, canonical_url, find_version
from service_bundler.app.specifier import parse_specifier
from shared.errors import InvalidPackageError, InvalidTagError, RegistryError
from shared.test_helpers import TestDataFactory


class TestFindVersion:
    """Test cases for find_version."""

    @pytest.fixture
    def react(self):
        return PackageMetadata.model_validate(TestDataFactory.create_test_packuments()["react"])

    def test_exact_version(self, react):
        assert find_version(react, "17.0.2") == "17.0.2"

    def test_dist_tag(self, react):
        assert find_version(react, "latest") == "18.2.0"
        assert find_version(react, "next") == "19.0.0-rc.1"

    def test_caret_range_picks_highest_match(self, react):
        assert find_version(react, "^16.8.0") == "16.14.0"

    def test_x_range(self, react):
        assert find_version(react, "17.x") == "17.0.2"

    def test_range_excludes_prereleases(self, react):
        assert find_version(react, ">=18.0.0") == "18.2.0"

    def test_unsatisfiable_range(self, react):
        assert find_version(react, "^20.0.0") is None

    def test_unknown_tag(self, react):
        assert find_version(react, "canary") is None


class TestVersionResolver:
    """Test cases for VersionResolver."""

    @pytest.fixture
    def resolver(self, registry_client):
        return VersionResolver(registry_client)

    @pytest.mark.asyncio
    async def test_latest_resolves_and_requires_redirect(self, resolver, registry_client):
        resolved = await resolver.resolve(parse_specifier("/left-pad@latest"))

        assert resolved.version == "1.3.0"
        assert resolved.package_name == "left-pad"
        assert resolved.is_canonical_request is False
        assert registry_client.calls == ["left-pad"]

    @pytest.mark.asyncio
    async def test_concrete_version_is_canonical(self, resolver):
        resolved = await resolver.resolve(parse_specifier("/left-pad@1.3.0"))

        assert resolved.version == "1.3.0"
        assert resolved.is_canonical_request is True

    @pytest.mark.asyncio
    async def test_scoped_package_uses_qualified_name(self, resolver, registry_client):
        resolved = await resolver.resolve(parse_specifier("/@babel/core@^7.22.0"))

        assert registry_client.calls == ["@babel/core"]
        assert resolved.version == "7.23.2"
        assert resolved.package_name == "@babel/core"

    @pytest.mark.asyncio
    async def test_dist_tag_pointing_at_garbage_is_invalid_tag(self, resolver):
        with pytest.raises(InvalidTagError) as exc_info:
            await resolver.resolve(parse_specifier("/broken-tag"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["package"] == "broken-tag"
        assert exc_info.value.details["tag"] == "latest"

    @pytest.mark.asyncio
    async def test_unresolvable_tag_is_invalid_tag(self, resolver):
        with pytest.raises(InvalidTagError):
            await resolver.resolve(parse_specifier("/left-pad@9.x"))

    @pytest.mark.asyncio
    async def test_metadata_without_versions_is_invalid_package(self):
        client = AsyncMock()
        client.fetch_metadata.return_value = {"error": "Not found"}
        resolver = VersionResolver(client)

        with pytest.raises(InvalidPackageError) as exc_info:
            await resolver.resolve(parse_specifier("/left-pad"))

        assert exc_info.value.message == "Invalid Module"
        client.fetch_metadata.assert_awaited_once_with("left-pad")

    @pytest.mark.asyncio
    async def test_registry_failure_propagates(self, resolver):
        with pytest.raises(RegistryError) as exc_info:
            await resolver.resolve(parse_specifier("/does-not-exist"))

        assert exc_info.value.details["package"] == "does-not-exist"


class TestCanonicalUrl:
    """Test cases for canonical_url."""

    def test_plain(self):
        assert canonical_url("left-pad", "1.3.0", parse_specifier("/left-pad")) == "/left-pad@1.3.0"

    def test_keeps_subpath_and_sorts_query(self):
        specifier = parse_specifier("/@babel/core/lib/index.js", "b=2&a")
        assert canonical_url("@babel/core", "7.23.2", specifier) == "/@babel/core@7.23.2/lib/index.js?a=true&b=2"
