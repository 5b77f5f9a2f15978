"""
Parser for npm-style package specifiers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Union

from shared.errors import ParseError


# True marks a key that was present without a value ("?dev")
QueryValue = Union[str, bool]
QueryParams = Mapping[str, QueryValue]

DEFAULT_TAG = "latest"

_SPECIFIER_PATTERN = re.compile(
    r"^/(?:@(?P<scope>[^/]+)/)?(?P<name>[^@/]+)(?:@(?P<tag>.+?))?(?:/(?P<subpath>.+?))?$"
)

_EMPTY_QUERY: QueryParams = MappingProxyType({})


@dataclass(frozen=True)
class PackageSpecifier:
    """Structured form of a bundle request path."""

    name: str
    scope: Optional[str] = None
    tag: str = DEFAULT_TAG
    subpath: Optional[str] = None
    query: QueryParams = field(default_factory=lambda: _EMPTY_QUERY)

    def __post_init__(self) -> None:
        if not isinstance(self.query, MappingProxyType):
            object.__setattr__(self, "query", MappingProxyType(dict(self.query)))

    @property
    def qualified_name(self) -> str:
        """Registry name, `@scope/name` for scoped packages."""
        if self.scope:
            return f"@{self.scope}/{self.name}"
        return self.name


def parse_query(query_string: str) -> QueryParams:
    """Split a raw query string on `&` then `=`, keeping insertion order."""
    query = {}
    for pair in (query_string or "").split("&"):
        if not pair:
            continue
        parts = pair.split("=")
        key = parts[0]
        value = parts[1] if len(parts) > 1 else ""
        query[key] = value or True
    return MappingProxyType(query)


def canonical_query(query: QueryParams) -> str:
    """Serialize query params with sorted keys; empty string when there are none."""
    serialized = "&".join(
        f"{key}={_render_value(query[key])}" for key in sorted(query)
    )
    return f"?{serialized}" if serialized else ""


def _render_value(value: QueryValue) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def parse_specifier(path: str, query_string: str = "") -> PackageSpecifier:
    """
    Parse a request path such as `/@scope/name@1.2.3/lib/index.js`.

    The query string may be passed separately or left inline after `?`.
    Raises ParseError when the path does not match the specifier grammar.
    """
    if "?" in path:
        path, _, inline_query = path.partition("?")
        query_string = query_string or inline_query

    match = _SPECIFIER_PATTERN.match(path or "")
    if not match:
        raise ParseError(details={"path": path})

    return PackageSpecifier(
        scope=match.group("scope"),
        name=match.group("name"),
        tag=match.group("tag") or DEFAULT_TAG,
        subpath=match.group("subpath"),
        query=parse_query(query_string),
    )
