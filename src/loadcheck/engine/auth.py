"""Bearer token acquisition against the login endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loadcheck._internal.errors import AuthError, TransportError
from loadcheck._internal.logging import get_logger
from loadcheck.dsl.http_client import HttpClient

if TYPE_CHECKING:
    from loadcheck.dsl.scenario import AuthSpec

logger = get_logger("engine.auth")


@dataclass(frozen=True)
class AuthToken:
    """Opaque bearer token shared read-only by one virtual user's requests.

    The value is excluded from ``repr`` so it never lands in logs.
    """

    value: str = field(repr=False)

    def authorization_header(self) -> str:
        """Return the ``Authorization`` header value."""
        return f"Bearer {self.value}"


async def authenticate(auth: AuthSpec, *, timeout: float = 30.0) -> AuthToken:
    """Log in and return the bearer token found at ``data.token``.

    Args:
        auth: Login endpoint and credentials.
        timeout: Request timeout in seconds.

    Returns:
        A non-empty AuthToken.

    Raises:
        AuthError: If the endpoint is unreachable, answers with a non-2xx
            status, returns something other than JSON, or the token is
            missing or empty.
    """
    body = {
        "username": auth.credentials.username,
        "password": auth.credentials.password,
    }

    async with HttpClient(base_url=auth.url, timeout=timeout) as client:
        try:
            resp = await client.post(auth.login_path, json_body=body)
        except TransportError as exc:
            msg = f"Auth endpoint unreachable: {exc}"
            raise AuthError(msg) from exc

    if not 200 <= resp.status < 300:
        msg = f"Login failed with HTTP {resp.status} at {auth.login_url}"
        raise AuthError(msg)

    try:
        payload = resp.json()
    except ValueError as exc:
        msg = f"Login response from {auth.login_url} is not valid JSON"
        raise AuthError(msg) from exc

    data = payload.get("data") if isinstance(payload, dict) else None
    token = data.get("token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        msg = f"Login response from {auth.login_url} has no data.token"
        raise AuthError(msg)

    logger.debug("Obtained token for user %s", auth.credentials.username)
    return AuthToken(token)
