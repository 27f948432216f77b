"""HTTP transports, in order of preference."""

from rtbuild.adapters.http.curl import CurlClient
from rtbuild.adapters.http.urllib_client import UrllibClient
from rtbuild.adapters.http.wget import WgetClient

__all__ = [
    "CurlClient",
    "UrllibClient",
    "WgetClient",
]
