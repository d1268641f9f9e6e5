"""Timed async HTTP client built on ``aiohttp``."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import aiohttp

from loadcheck._internal.errors import TransportError

if TYPE_CHECKING:
    from loadcheck._internal.types import Headers, JsonValue

# Headers every request carries unless overridden.
DEFAULT_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Accept": "*/*",
}


@dataclass(frozen=True)
class HttpResponse:
    """A fully read HTTP response.

    The body is read before the connection is released, so the object
    stays usable after the client is closed.

    Attributes:
        status: HTTP status code.
        body: Raw response body.
        latency_ms: Time from sending the request to reading the body.
        headers: Response headers.
    """

    status: int
    body: bytes
    latency_ms: float
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> JsonValue:
        """Decode the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.body.decode("utf-8"))


class HttpClient:
    """Async HTTP client wrapping ``aiohttp.ClientSession``.

    Every request is timed, its body fully read, and connection or timeout
    failures are raised as ``TransportError``.

    Attributes:
        base_url: Base URL prepended to all request paths.
        headers: Headers applied to every request. Callers may add an
            ``Authorization`` header after construction.
    """

    def __init__(
        self,
        base_url: str,
        headers: Headers | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL prepended to all request paths.
            headers: Default headers applied to every request. Defaults to
                JSON content type and ``Accept: */*``.
            timeout: Total request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = dict(DEFAULT_HEADERS if headers is None else headers)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    def url_for(self, path: str) -> str:
        """Return the full URL for ``path``."""
        return f"{self.base_url}{path}"

    async def get(self, path: str) -> HttpResponse:
        """Send a GET request."""
        return await self.request("GET", path)

    async def post(self, path: str, *, json_body: JsonValue = None) -> HttpResponse:
        """Send a POST request with an optional JSON body."""
        return await self.request("POST", path, json_body=json_body)

    async def put(self, path: str, *, json_body: JsonValue = None) -> HttpResponse:
        """Send a PUT request with an optional JSON body."""
        return await self.request("PUT", path, json_body=json_body)

    async def delete(self, path: str) -> HttpResponse:
        """Send a DELETE request."""
        return await self.request("DELETE", path)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: JsonValue = None,
    ) -> HttpResponse:
        """Send an HTTP request and read the full response.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: URL path appended to base_url.
            json_body: Body serialized as JSON. ``None`` sends no body.

        Returns:
            The read response. Non-2xx statuses are returned, not raised.

        Raises:
            RuntimeError: If the client is used outside of an async context
                manager.
            TransportError: On connection failures and timeouts.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = self.url_for(path)
        data = None if json_body is None else json.dumps(json_body)

        start = time.monotonic()
        try:
            async with self._session.request(
                method,
                url,
                headers=dict(self.headers),
                data=data,
            ) as resp:
                body = await resp.read()
                status = resp.status
                headers = dict(resp.headers)
        except (aiohttp.ClientError, TimeoutError) as exc:
            msg = f"{method} {url} failed: {type(exc).__name__}: {exc}"
            raise TransportError(msg) from exc

        return HttpResponse(
            status=status,
            body=body,
            latency_ms=(time.monotonic() - start) * 1000,
            headers=headers,
        )
