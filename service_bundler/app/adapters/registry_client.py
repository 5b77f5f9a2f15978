"""
Package registry client.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from shared.logging import get_logger
from shared.errors import RegistryError
from shared.resilience import CircuitBreaker, CircuitOpenError, RetryConfig, RetryError, retry_on_exception


class RegistryClient:
    """Client for fetching package metadata from an npm-compatible registry."""

    def __init__(self, registry_url: str, *, timeout: float = 10.0, retry_config: Optional[RetryConfig] = None):
        self.registry_url = registry_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("bundler.registry_client")
        self.circuit_breaker = CircuitBreaker("registry", failure_threshold=5, recovery_timeout=30.0)
        self.retry_config = retry_config or RetryConfig()
        # Transport failures and 5xx answers are worth another attempt
        self._get_with_retry = retry_on_exception(
            (httpx.TransportError, httpx.HTTPStatusError),
            config=self.retry_config
        )(self._get)

    def metadata_url(self, qualified_name: str) -> str:
        """Registry URL for a package; scoped names keep their leading `@`."""
        return f"{self.registry_url}/{quote(qualified_name, safe='@')}"

    async def fetch_metadata(self, qualified_name: str) -> Dict[str, Any]:
        """Fetch the packument for `qualified_name`."""
        url = self.metadata_url(qualified_name)

        try:
            response = await self.circuit_breaker.call(self._get_with_retry, url)
        except CircuitOpenError as exc:
            self.logger.error("Registry circuit open", package=qualified_name)
            raise RegistryError(qualified_name, details={"reason": str(exc)}) from exc
        except RetryError as exc:
            self.logger.error(
                "Failed in fetching package from registry",
                package=qualified_name,
                attempts=exc.attempts,
                error=str(exc.last_exception)
            )
            raise RegistryError(qualified_name, details={"reason": str(exc.last_exception)}) from exc

        if response.status_code != 200:
            self.logger.warning(
                "Registry request failed",
                package=qualified_name,
                status_code=response.status_code
            )
            raise RegistryError(qualified_name, details={"status_code": response.status_code})

        try:
            payload = response.json()
        except ValueError as exc:
            self.logger.error("Registry returned a non-JSON body", package=qualified_name)
            raise RegistryError(qualified_name, details={"reason": "invalid JSON"}) from exc

        self.logger.debug("Package metadata retrieved", package=qualified_name, url=url)
        return payload

    async def _get(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url, headers={"Accept": "application/json"})
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def ping(self) -> bool:
        """Return True while the registry circuit is not open."""
        return not self.circuit_breaker.is_open()
