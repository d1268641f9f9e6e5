"""Shared test fixtures for the loadcheck test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
from aiohttp import web

from loadcheck.dsl.scenario import (
    AuthSpec,
    Credentials,
    Group,
    HttpMethod,
    RequestSpec,
    Scenario,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator
    from pathlib import Path

VALID_USERNAME = "admin"
VALID_PASSWORD = "222222"  # noqa: S105
TEST_TOKEN = "test-token-12345"  # noqa: S105


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Fake TrainTicket server
# =============================================================================


@dataclass
class RecordedRequest:
    """A request as seen by the fake server."""

    method: str
    path: str
    headers: dict[str, str]
    body: bytes
    received_at: float
    responded_at: float = 0.0


@dataclass
class FakeServer:
    """Handle on a running fake TrainTicket server.

    Attributes:
        base_url: URL of the server, serving both auth and services.
        requests: Every request received, in arrival order.
        configs: In-memory store behind the config-service endpoints.
    """

    base_url: str
    requests: list[RecordedRequest] = field(default_factory=list)
    configs: dict[str, dict[str, Any]] = field(default_factory=dict)

    def paths(self) -> list[str]:
        """Return ``"METHOD /path"`` for every non-login request."""
        return [f"{r.method} {r.path}" for r in self.requests if not r.path.endswith("/login")]


SERVER_KEY = web.AppKey("server", FakeServer)


@web.middleware
async def _recording_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Any],
) -> web.StreamResponse:
    """Record each request, and reject unauthenticated service calls."""
    server: FakeServer = request.app[SERVER_KEY]
    record = RecordedRequest(
        method=request.method,
        path=request.path,
        headers=dict(request.headers),
        body=await request.read(),
        received_at=time.monotonic(),
    )
    server.requests.append(record)

    if request.path.startswith("/api/v1/") and not request.path.endswith("/login"):
        if request.headers.get("Authorization") != f"Bearer {TEST_TOKEN}":
            response: web.StreamResponse = web.json_response(
                {"status": 0, "msg": "Unauthorized"}, status=403
            )
            record.responded_at = time.monotonic()
            return response

    response = await handler(request)
    record.responded_at = time.monotonic()
    return response


async def _login_handler(request: web.Request) -> web.Response:
    """TrainTicket-style login: token under ``data.token``."""
    body = await request.json()
    if body.get("username") == VALID_USERNAME and body.get("password") == VALID_PASSWORD:
        return web.json_response(
            {
                "status": 1,
                "msg": "login success",
                "data": {"userId": "4d2a46c7", "username": VALID_USERNAME, "token": TEST_TOKEN},
            }
        )
    if body.get("username") == "no-token":
        return web.json_response({"status": 0, "msg": "no token", "data": None})
    if body.get("username") == "empty-token":
        return web.json_response({"status": 1, "msg": "ok", "data": {"token": ""}})
    return web.json_response(
        {"status": 0, "msg": "Incorrect username or password.", "data": None},
        status=401,
    )


async def _not_json_login_handler(request: web.Request) -> web.Response:
    return web.Response(text="<html>maintenance</html>", content_type="text/html")


async def _welcome_handler(request: web.Request) -> web.Response:
    return web.Response(text="Welcome to [ Service ] !")


async def _list_configs(request: web.Request) -> web.Response:
    server: FakeServer = request.app[SERVER_KEY]
    return web.json_response({"status": 1, "data": list(server.configs.values())})


async def _create_config(request: web.Request) -> web.Response:
    server: FakeServer = request.app[SERVER_KEY]
    body = await request.json()
    server.configs[body["name"]] = body
    return web.json_response({"status": 1, "msg": "Create success", "data": body}, status=201)


async def _get_config(request: web.Request) -> web.Response:
    server: FakeServer = request.app[SERVER_KEY]
    name = request.match_info["name"]
    if name not in server.configs:
        return web.json_response({"status": 0, "msg": "No content"}, status=404)
    return web.json_response({"status": 1, "data": server.configs[name]})


async def _delete_config(request: web.Request) -> web.Response:
    server: FakeServer = request.app[SERVER_KEY]
    name = request.match_info["name"]
    if server.configs.pop(name, None) is None:
        return web.json_response({"status": 0, "msg": "Config not exist"}, status=404)
    return web.json_response({"status": 1, "msg": "Delete success"})


async def _ok_json_handler(request: web.Request) -> web.Response:
    """Accept any JSON body and answer 200."""
    if request.can_read_body:
        await request.json()
    return web.json_response({"status": 1, "msg": "Success", "data": []})


async def _slow_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _status_handler(request: web.Request) -> web.Response:
    """Return the status code given in the path."""
    return web.json_response({"status": 0}, status=int(request.match_info["code"]))


def _create_app(server: FakeServer) -> web.Application:
    """Build the fake TrainTicket app with all test routes."""
    app = web.Application(middlewares=[_recording_middleware])
    app[SERVER_KEY] = server

    app.router.add_post("/api/v1/users/login", _login_handler)
    app.router.add_post("/broken/login", _not_json_login_handler)

    cfg = "/api/v1/configservice"
    app.router.add_get(f"{cfg}/welcome", _welcome_handler)
    app.router.add_get(f"{cfg}/configs", _list_configs)
    app.router.add_post(f"{cfg}/configs", _create_config)
    app.router.add_get(f"{cfg}/configs/{{name}}", _get_config)
    app.router.add_delete(f"{cfg}/configs/{{name}}", _delete_config)

    ticket = "/api/v1/ticketinfoservice"
    app.router.add_get(f"{ticket}/welcome", _welcome_handler)
    app.router.add_get(f"{ticket}/ticketinfo/{{name}}", _ok_json_handler)
    app.router.add_post(f"{ticket}/ticketinfo", _ok_json_handler)

    plan = "/api/v1/travelplanservice"
    app.router.add_get(f"{plan}/welcome", _welcome_handler)
    for route in ("transferResult", "quickest", "cheapest", "minStation"):
        app.router.add_post(f"{plan}/travelPlan/{route}", _ok_json_handler)

    app.router.add_get("/api/v1/test/slow", _slow_handler)
    app.router.add_route("*", "/api/v1/test/status/{code}", _status_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def trainticket_server() -> AsyncIterator[FakeServer]:
    """Fake TrainTicket server on the test's event loop."""
    port = _get_free_port()
    server = FakeServer(base_url=f"http://127.0.0.1:{port}")
    runner = web.AppRunner(_create_app(server))
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield server
    await runner.cleanup()


@pytest.fixture
def sync_trainticket_server() -> Iterator[FakeServer]:
    """Fake TrainTicket server running in a background thread.

    Used by CLI tests, where the command under test runs its own event
    loop on the main thread.
    """
    port = _get_free_port()
    server = FakeServer(base_url=f"http://127.0.0.1:{port}")
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_app(server))
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield server

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def make_scenario() -> Callable[..., Scenario]:
    """Factory building a Scenario directly, bypassing the file loader.

    Requests are given as ``(method, path, expected_status)`` tuples or as
    ready RequestSpec objects, grouped by name.
    """

    def _factory(
        base_url: str,
        groups: dict[str, list[Any]],
        *,
        auth_url: str | None = None,
        username: str = VALID_USERNAME,
        password: str = VALID_PASSWORD,
        login_path: str = "/api/v1/users/login",
    ) -> Scenario:
        built = []
        for name, items in groups.items():
            specs = []
            for item in items:
                if isinstance(item, RequestSpec):
                    specs.append(item)
                else:
                    method, path, expected = item
                    specs.append(RequestSpec(HttpMethod(method), path, expected))
            built.append(Group(name=name, requests=tuple(specs)))
        return Scenario(
            name="Test Scenario",
            base_url=base_url,
            auth=AuthSpec(
                url=auth_url or base_url,
                credentials=Credentials(username, password),
                login_path=login_path,
            ),
            groups=tuple(built),
        )

    return _factory


@pytest.fixture
def scenario_file(tmp_path: Path) -> Callable[[str], Path]:
    """Write scenario YAML text to a temporary file and return its path."""

    def _write(text: str, name: str = "scenario.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
