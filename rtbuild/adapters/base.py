"""
HTTP client base — the transport contract used by the fetcher.

The fetcher never shells out to curl or opens sockets itself.  It asks
the ``HttpClientRegistry`` for the best available client and talks to
it through this interface only.

To add a transport:
    1. Subclass HttpClient
    2. Implement name, is_available, head, download
    3. Register it in the HttpClientRegistry
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class HttpClient(ABC):
    """Abstract base class for download transports."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The transport identifier (e.g., 'curl', 'wget', 'urllib')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the underlying tool exists.

        Should be fast and never raise.
        """

    @abstractmethod
    def head(self, url: str) -> bool:
        """Probe ``url`` for existence.  Returns False on any failure."""

    @abstractmethod
    def download(self, url: str, dest: Path) -> None:
        """Download ``url`` to ``dest``.

        Raises:
            FetchError: On any network or HTTP failure.  ``dest`` is
                removed so no partial file is left behind.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
