"""
Shared error handling for the bundle service.

Every failure a request can hit maps to one ``BundlerException`` subclass.
The ``code`` is the kind tag, ``details`` carries context such as the
package, version or cache key, and ``status_code`` is the HTTP status the
request boundary answers with.
"""

from typing import Dict, Any, Optional


class BundlerException(Exception):
    """Base exception for bundle service errors."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, details={self.details!r})"


class ParseError(BundlerException):
    """The request path is not a valid package specifier."""

    status_code = 400

    def __init__(self, message: str = "Invalid module ID", details: Optional[Dict[str, Any]] = None):
        super().__init__("PARSE_ERROR", message, details)


class RegistryError(BundlerException):
    """Package metadata could not be fetched from the registry."""

    status_code = 400

    def __init__(self, package: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        message = message or f"Failed in fetching package from the npm {package}"
        super().__init__("REGISTRY_ERROR", message, {"package": package, **(details or {})})


class InvalidPackageError(BundlerException):
    """Registry metadata has no usable versions collection."""

    status_code = 400

    def __init__(self, package: str, message: str = "Invalid Module", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_PACKAGE", message, {"package": package, **(details or {})})


class InvalidTagError(BundlerException):
    """The requested tag does not resolve to a valid semantic version."""

    status_code = 400

    def __init__(self, package: str, tag: str, message: str = "Invalid tag", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_TAG", message, {"package": package, "tag": tag, **(details or {})})


class BuildError(BundlerException):
    """The bundle builder failed to produce a bundle."""

    status_code = 500

    def __init__(self, message: str = "Bundle build failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("BUILD_ERROR", message, details)


class CacheStoreError(BundlerException):
    """The cache store could not be read or written."""

    status_code = 500

    def __init__(self, message: str = "Cache store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_STORE_ERROR", message, details)
