"""
HTTP response assembly for bundle requests.
"""

import base64
import hashlib
from typing import Dict, Optional

from fastapi import Response
from fastapi.responses import PlainTextResponse, RedirectResponse


BUNDLE_CONTENT_TYPE = "application/javascript; charset=utf-8"
CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Methods": "GET",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "3600",
}


def compute_etag(body: bytes) -> str:
    """Strong ETag: byte length in hex plus a truncated base64 SHA-1."""
    digest = base64.b64encode(hashlib.sha1(body).digest()).decode("ascii")[:27]
    return f'"{len(body):x}-{digest}"'


class ResponseAssembler:
    """Builds every response the bundle route sends."""

    def __init__(self, additional_headers: Optional[Dict[str, str]] = None):
        self.additional_headers = dict(additional_headers or {})

    def bundle(self, zipped: bytes) -> Response:
        headers = {
            **CORS_HEADERS,
            "Content-Length": str(len(zipped)),
            "Content-Type": BUNDLE_CONTENT_TYPE,
            "Content-Encoding": "gzip",
            **self.additional_headers,
            "ETag": compute_etag(zipped),
        }
        return Response(content=zipped, status_code=200, headers=headers)

    def preflight(self) -> Response:
        return Response(status_code=204, headers={**CORS_HEADERS, **PREFLIGHT_HEADERS})

    def redirect(self, url: str) -> Response:
        return RedirectResponse(url=url, status_code=302, headers=dict(CORS_HEADERS))

    def error(self, status_code: int, message: str) -> Response:
        return PlainTextResponse(message, status_code=status_code, headers=dict(CORS_HEADERS))

    def invalid_method(self) -> Response:
        return PlainTextResponse(
            "Invalid METHOD",
            status_code=405,
            headers={**CORS_HEADERS, "Allow": "GET, OPTIONS"},
        )
