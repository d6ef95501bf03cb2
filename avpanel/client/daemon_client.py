"""HTTP client for the daemon relay.

Every reply is a JSON object. Anything that prevents us from getting one
(network faults, timeouts, non-2xx replies, garbage bodies) is a
``TransportFailure``. A well-formed reply carrying the unreachable-daemon
marker is a ``DaemonUnavailable``. Application-level rejections are returned
as-is; interpreting ``success`` is the caller's job.
"""

import logging
import os
from typing import Any

import httpx

from avpanel.consts import (
    DAEMON_UNAVAILABLE_MARKER,
    DEFAULT_API_BASE,
    DEFAULT_REQUEST_TIMEOUT,
    ENV_API_BASE,
    ENV_TIMEOUT,
)
from avpanel.errors import DaemonUnavailable, TransportFailure, error_message, is_daemon_unavailable

logger = logging.getLogger(__name__)


class DaemonClient:
    """Thin JSON client around one lazily created ``httpx.AsyncClient``."""

    def __init__(
        self,
        api_base: str | None = None,
        timeout: float | None = None,
        unavailable_marker: str = DAEMON_UNAVAILABLE_MARKER,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_base: Relay base URL. None = read from env (AVPANEL_API_BASE),
                      falling back to the local default.
            timeout: Request timeout in seconds. None = env (AVPANEL_TIMEOUT) or default.
            unavailable_marker: Error code the relay uses for an unreachable daemon.
            transport: Optional httpx transport, mainly for tests.
        """
        if api_base is None:
            api_base = os.getenv(ENV_API_BASE, "").strip() or DEFAULT_API_BASE
        if timeout is None:
            env_timeout = os.getenv(ENV_TIMEOUT, "").strip()
            try:
                timeout = float(env_timeout) if env_timeout else DEFAULT_REQUEST_TIMEOUT
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_TIMEOUT}={env_timeout!r}")
                timeout = DEFAULT_REQUEST_TIMEOUT

        # Relative endpoints only join correctly onto a base ending in "/"
        self.api_base = api_base if api_base.endswith("/") else api_base + "/"
        self.timeout = timeout
        self.unavailable_marker = unavailable_marker
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_base,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request to the relay and return the decoded reply.

        Args:
            method: HTTP method.
            endpoint: Path relative to the API base (e.g. "scan/status").
            json: Optional JSON body.

        Returns:
            Decoded JSON object.

        Raises:
            TransportFailure: Relay unreachable, non-2xx status, or undecodable body.
            DaemonUnavailable: Relay reports the daemon itself as unreachable.
        """
        client = await self._get_client()
        try:
            response = await client.request(method, endpoint, json=json)
        except httpx.TimeoutException as e:
            raise TransportFailure(f"{method} {endpoint} timed out") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"{method} {endpoint} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        # The relay may attach the marker to an error status, so check it first
        if is_daemon_unavailable(body, self.unavailable_marker):
            raise DaemonUnavailable(error_message(body) or "Daemon unavailable")

        if not response.is_success:
            raise TransportFailure(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise TransportFailure(f"{method} {endpoint} returned a non-object body")

        logger.debug(f"{method} {endpoint} -> {response.status_code}")
        return body

    async def get(self, endpoint: str) -> dict[str, Any]:
        return await self.request("GET", endpoint)

    async def post(self, endpoint: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("POST", endpoint, json=json)

    async def put(self, endpoint: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("PUT", endpoint, json=json)

    async def delete(self, endpoint: str) -> dict[str, Any]:
        return await self.request("DELETE", endpoint)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "DaemonClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
