"""
Unit tests for the registry client.
"""

import pytest
import httpx
from unittest.mock import AsyncMock, patch

from service_bundler.app.adapters import RegistryClient
from shared.errors import RegistryError
from shared.resilience import RetryConfig
from shared.test_helpers import TestDataFactory


def registry_response(status_code, url="https://registry.example.test/left-pad", **kwargs):
    return httpx.Response(status_code=status_code, request=httpx.Request("GET", url), **kwargs)


class TestRegistryClient:
    """Test cases for RegistryClient."""

    @pytest.fixture
    def client(self):
        return RegistryClient(
            "https://registry.example.test/",
            retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False),
        )

    @pytest.fixture
    def packument(self):
        return TestDataFactory.create_packument("left-pad", ["1.2.0", "1.3.0"])

    def test_metadata_url_keeps_scope_marker(self, client):
        assert client.metadata_url("left-pad") == "https://registry.example.test/left-pad"
        assert client.metadata_url("@babel/core") == "https://registry.example.test/@babel%2Fcore"

    @pytest.mark.asyncio
    async def test_fetch_metadata_success(self, client, packument):
        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(return_value=registry_response(200, json=packument))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            result = await client.fetch_metadata("left-pad")

            assert result == packument
            assert mock_get.await_args.args[0] == "https://registry.example.test/left-pad"

    @pytest.mark.asyncio
    async def test_not_found_is_registry_error_without_retry(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(return_value=registry_response(404, json={"error": "Not found"}))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            with pytest.raises(RegistryError) as exc_info:
                await client.fetch_metadata("left-pad")

            assert exc_info.value.status_code == 400
            assert exc_info.value.details["status_code"] == 404
            assert exc_info.value.message == "Failed in fetching package from the npm left-pad"
            assert mock_get.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, client, packument):
        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(side_effect=[
                registry_response(503, text="unavailable"),
                registry_response(200, json=packument),
            ])
            mock_client.return_value.__aenter__.return_value.get = mock_get

            result = await client.fetch_metadata("left-pad")

            assert result["name"] == "left-pad"
            assert mock_get.await_count == 2

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_retries(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            with pytest.raises(RegistryError) as exc_info:
                await client.fetch_metadata("left-pad")

            assert "connection refused" in exc_info.value.details["reason"]
            assert mock_get.await_count == 2

    @pytest.mark.asyncio
    async def test_non_json_body(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=registry_response(200, text="<html>proxy error</html>")
            )

            with pytest.raises(RegistryError) as exc_info:
                await client.fetch_metadata("left-pad")

            assert exc_info.value.details["reason"] == "invalid JSON"

    @pytest.mark.asyncio
    async def test_open_circuit_blocks_calls(self, client):
        client.circuit_breaker.failure_threshold = 1

        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            with pytest.raises(RegistryError):
                await client.fetch_metadata("left-pad")
            calls_before = mock_get.await_count

            with pytest.raises(RegistryError) as exc_info:
                await client.fetch_metadata("left-pad")

            assert "OPEN" in exc_info.value.details["reason"]
            assert mock_get.await_count == calls_before
            assert await client.ping() is False
