"""
HTTP client registry — picks the download transport at startup.

Clients are probed in registration order (curl → wget → urllib) and
the first one whose tool exists wins.  A caller may force a specific
client by name; forcing one that is missing is a hard error rather
than a silent fallback.
"""

from __future__ import annotations

import logging

from rtbuild.adapters.base import HttpClient
from rtbuild.adapters.shell.command import CommandRunner
from rtbuild.core.errors import HttpClientUnavailableError

logger = logging.getLogger(__name__)


class HttpClientRegistry:
    """Ordered registry of HTTP transports."""

    def __init__(self) -> None:
        self._clients: dict[str, HttpClient] = {}

    def register(self, client: HttpClient) -> None:
        name = client.name
        if name in self._clients:
            logger.warning("Overwriting existing HTTP client: %s", name)
        self._clients[name] = client
        logger.debug("Registered HTTP client: %s", name)

    def unregister(self, name: str) -> None:
        self._clients.pop(name, None)

    def get(self, name: str) -> HttpClient | None:
        return self._clients.get(name)

    def list_clients(self) -> list[str]:
        return list(self._clients.keys())

    def select(self, preferred: str | None = None) -> HttpClient:
        """Return the client to use for this run.

        Args:
            preferred: Force a client by name (e.g. from RTBUILD_HTTP_CLIENT).

        Raises:
            HttpClientUnavailableError: If the forced client is unknown or
                missing, or no registered client is available.
        """
        if preferred:
            client = self._clients.get(preferred)
            if client is None:
                raise HttpClientUnavailableError(
                    f"unknown HTTP client '{preferred}' "
                    f"(known: {', '.join(self._clients) or 'none'})"
                )
            if not client.is_available():
                raise HttpClientUnavailableError(
                    f"HTTP client '{preferred}' was requested but is not installed"
                )
            return client

        for client in self._clients.values():
            if client.is_available():
                logger.debug("Selected HTTP client: %s", client.name)
                return client

        raise HttpClientUnavailableError(
            "no HTTP client available: please install `curl` or `wget` and try again"
        )


def default_http_registry(runner: CommandRunner) -> HttpClientRegistry:
    """Registry with the built-in transports in preference order."""
    from rtbuild.adapters.http import CurlClient, UrllibClient, WgetClient

    registry = HttpClientRegistry()
    registry.register(CurlClient(runner))
    registry.register(WgetClient(runner))
    registry.register(UrllibClient())
    return registry
