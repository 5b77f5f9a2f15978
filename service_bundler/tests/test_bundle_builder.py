"""
Unit tests for the HTTP bundle builder client.
"""

import pytest
import httpx
from unittest.mock import AsyncMock, patch

from service_bundler.app.adapters import HttpBundleBuilder
from shared.errors import BuildError


def builder_response(status_code, **kwargs):
    return httpx.Response(
        status_code=status_code,
        request=httpx.Request("POST", "http://builder.test/build"),
        **kwargs
    )


class TestHttpBundleBuilder:
    """Test cases for HttpBundleBuilder."""

    @pytest.fixture
    def builder(self):
        return HttpBundleBuilder("http://builder.test/")

    @pytest.mark.asyncio
    async def test_build_posts_inputs_and_returns_source(self, builder):
        with patch('httpx.AsyncClient') as mock_client:
            mock_post = AsyncMock(return_value=builder_response(200, text="export default 1;"))
            mock_client.return_value.__aenter__.return_value.post = mock_post

            source = await builder.build("abc", "react", "18.2.0", "index.js", {"dev": True})

            assert source == "export default 1;"
            assert mock_post.await_args.args[0] == "http://builder.test/build"
            assert mock_post.await_args.kwargs["json"] == {
                "key": "abc",
                "name": "react",
                "version": "18.2.0",
                "subpath": "index.js",
                "query": {"dev": True},
            }

    @pytest.mark.asyncio
    async def test_error_status_raises_build_error_with_first_line(self, builder):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=builder_response(422, text="Cannot find module 'fs'\n    at resolve (bundler.js:10)")
            )

            with pytest.raises(BuildError) as exc_info:
                await builder.build("abc", "react", "18.2.0", None, {})

            assert exc_info.value.message == "Cannot find module 'fs'"
            assert exc_info.value.details["status_code"] == 422
            assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_unreachable_worker(self, builder):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(BuildError) as exc_info:
                await builder.build("abc", "react", "18.2.0", None, {})

            assert exc_info.value.message == "Failed in fetching the bundle react"
