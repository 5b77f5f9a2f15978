"""
Cross-cutting domain helpers for the bundle service.
"""

from .response import ResponseAssembler, compute_etag

__all__ = ["ResponseAssembler", "compute_etag"]
