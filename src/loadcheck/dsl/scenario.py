"""Scenario, group, and request definition dataclasses."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import quote

from loadcheck._internal.errors import ScenarioError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from loadcheck._internal.types import JsonValue

DEFAULT_LOGIN_PATH = "/api/v1/users/login"

_PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]+)\}")


class HttpMethod(str, Enum):
    """HTTP methods a request may use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Credentials:
    """Username/password pair sent to the login endpoint.

    The password is excluded from ``repr`` so it never lands in logs.
    """

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class AuthSpec:
    """Where and how a virtual user obtains its bearer token.

    Attributes:
        url: Base URL of the auth service.
        credentials: Credentials posted as the JSON login body.
        login_path: Path of the login endpoint, appended to ``url``.
    """

    url: str
    credentials: Credentials
    login_path: str = DEFAULT_LOGIN_PATH

    @property
    def login_url(self) -> str:
        """Full URL of the login endpoint."""
        return f"{self.url.rstrip('/')}{self.login_path}"


@dataclass(frozen=True)
class RequestSpec:
    """A single HTTP request and the status it is expected to return.

    Attributes:
        method: HTTP method.
        path: Request path with all placeholders already bound.
        expected_status: Status code the check compares against.
        body: Optional JSON-serializable request body.
        post_delay_seconds: Pause after the request completes, if any.
        name: Optional human-readable label for the check.
    """

    method: HttpMethod
    path: str
    expected_status: int = 200
    body: JsonValue = None
    post_delay_seconds: float | None = None
    name: str | None = None

    @property
    def label(self) -> str:
        """Label used for the check recorded for this request."""
        return self.name or f"{self.method.value} {self.path}"


@dataclass(frozen=True)
class Group:
    """An ordered list of requests replayed sequentially.

    Later requests may rely on side effects of earlier ones
    (create-then-delete), so order is preserved exactly.
    """

    name: str
    requests: tuple[RequestSpec, ...] = ()


@dataclass(frozen=True)
class Scenario:
    """Complete declarative description of a load test.

    Built once at process start and shared read-only by every virtual
    user.

    Attributes:
        name: Human-readable name, used in logs and reports.
        base_url: Base URL prepended to every request path.
        auth: Login endpoint and credentials.
        groups: Request groups in execution order.
        sleep_duration: Delay applied to requests declared with ``sleep: true``.
    """

    name: str
    base_url: str
    auth: AuthSpec
    groups: tuple[Group, ...] = ()
    sleep_duration: float = 0.0

    @property
    def request_count(self) -> int:
        """Number of requests in one iteration."""
        return sum(len(group.requests) for group in self.groups)


def bind_path(template: str, params: Mapping[str, object]) -> str:
    """Substitute ``{name}`` placeholders in a path template.

    Values are percent-encoded so that a bound value can never introduce
    extra path segments.

    Args:
        template: Path such as ``/configs/{configName}``.
        params: Values for each placeholder.

    Returns:
        The bound path.

    Raises:
        ScenarioError: If a placeholder has no value in ``params``.
    """

    def _substitute(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        if key not in params:
            msg = f"Unbound placeholder {{{key}}} in path {template!r}"
            raise ScenarioError(msg)
        return quote(str(params[key]), safe="")

    return _PLACEHOLDER_PATTERN.sub(_substitute, template)
