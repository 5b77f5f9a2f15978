"""
Registry metadata schema and resolution results.
"""

from dataclasses import dataclass
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class PackageMetadata(BaseModel):
    """The subset of a registry packument the resolver relies on."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    versions: Dict[str, Dict[str, Any]]
    dist_tags: Dict[str, str] = Field(default_factory=dict, alias="dist-tags")


@dataclass(frozen=True)
class ResolvedVersion:
    """Outcome of resolving a specifier's tag against registry metadata."""

    package_name: str
    version: str
    is_canonical_request: bool
