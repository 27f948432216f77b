"""Adapters — transport and process bindings for the build pipeline.

Public re-exports for convenient access.
"""

from rtbuild.adapters.base import HttpClient
from rtbuild.adapters.registry import HttpClientRegistry, default_http_registry

__all__ = [
    "HttpClient",
    "HttpClientRegistry",
    "default_http_registry",
]
