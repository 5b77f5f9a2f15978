"""
Bundle builder clients.

Building itself (module resolution, transpilation) happens in a separate
build worker; this service only asks for a bundle and waits for its source.
"""

from typing import Dict, Optional, Union

import httpx

from shared.logging import get_logger
from shared.errors import BuildError


class BundleBuilder:
    """Interface every builder implements."""

    async def build(
        self,
        key: str,
        name: str,
        version: str,
        subpath: Optional[str],
        query: Dict[str, Union[str, bool]],
    ) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class HttpBundleBuilder(BundleBuilder):
    """Client for a remote build worker exposing `POST /build`."""

    def __init__(self, builder_url: str, *, timeout: float = 120.0):
        self.builder_url = builder_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("bundler.builder_client")

    async def build(
        self,
        key: str,
        name: str,
        version: str,
        subpath: Optional[str],
        query: Dict[str, Union[str, bool]],
    ) -> str:
        payload = {
            "key": key,
            "name": name,
            "version": version,
            "subpath": subpath,
            "query": query,
        }
        details = {"package": name, "version": version, "key": key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.builder_url}/build", json=payload)
        except httpx.HTTPError as exc:
            self.logger.error("Build worker unreachable", error=str(exc), **details)
            raise BuildError(f"Failed in fetching the bundle {name}", details=details) from exc

        if response.status_code != 200:
            self.logger.error(
                "Build worker returned an error",
                status_code=response.status_code,
                response=response.text[:500],
                **details
            )
            message = response.text.strip().splitlines()[0] if response.text.strip() else f"Failed in fetching the bundle {name}"
            raise BuildError(message, details={**details, "status_code": response.status_code})

        self.logger.debug("Bundle source received", size=len(response.content), **details)
        return response.text
