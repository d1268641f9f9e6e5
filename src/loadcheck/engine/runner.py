"""Scenario runner: authenticate once, then replay request groups."""

from __future__ import annotations

import asyncio
from enum import Enum, auto
from typing import TYPE_CHECKING

from loadcheck._internal.errors import EngineError, TransportError
from loadcheck._internal.logging import get_logger
from loadcheck.dsl.http_client import HttpClient
from loadcheck.engine.auth import authenticate
from loadcheck.metrics.models import CheckResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadcheck.dsl.scenario import Group, RequestSpec, Scenario
    from loadcheck.engine.auth import AuthToken

logger = get_logger("engine.runner")


def _noop_callback(check: CheckResult) -> None:
    """Default no-op check callback."""


class RunnerState(Enum):
    """Authentication state of a runner."""

    UNAUTHENTICATED = auto()
    AUTHENTICATED = auto()


class ScenarioRunner:
    """Executes a scenario for a single virtual user.

    State machine: UNAUTHENTICATED -> AUTHENTICATED, once, through a
    successful ``setup()``. There is no re-authentication: a token that
    expires mid-run makes every later check fail.

    Usage::

        async with ScenarioRunner(scenario) as runner:
            await runner.setup()
            checks = await runner.run()

    Attributes:
        scenario: The scenario being executed.
        user_id: Virtual user identifier stamped on every check.
    """

    def __init__(
        self,
        scenario: Scenario,
        *,
        timeout: float = 30.0,
        on_check: Callable[[CheckResult], None] | None = None,
        user_id: int = 0,
    ) -> None:
        """Initialize the runner.

        Args:
            scenario: The scenario to execute.
            timeout: Per-request timeout in seconds.
            on_check: Callback invoked with each CheckResult as soon as it
                is recorded. Defaults to a no-op.
            user_id: Virtual user identifier.
        """
        self.scenario = scenario
        self.user_id = user_id
        self._timeout = timeout
        self._on_check = on_check or _noop_callback
        self._state = RunnerState.UNAUTHENTICATED
        self._token: AuthToken | None = None
        self._iteration = 0
        self._client = HttpClient(base_url=scenario.base_url, timeout=timeout)
        self._client_open = False

    @property
    def state(self) -> RunnerState:
        """Return the current authentication state."""
        return self._state

    async def __aenter__(self) -> ScenarioRunner:
        await self._client.__aenter__()
        self._client_open = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        self._client_open = False
        await self._client.__aexit__(exc_type, exc_val, exc_tb)

    async def setup(self) -> AuthToken:
        """Obtain the bearer token used by every later request.

        Returns:
            The token, also stored on the runner.

        Raises:
            AuthError: If no usable token could be obtained. The runner
                stays UNAUTHENTICATED.
            EngineError: If setup already succeeded on this runner.
        """
        if self._state is RunnerState.AUTHENTICATED:
            msg = "setup() already completed for this runner"
            raise EngineError(msg)

        token = await authenticate(self.scenario.auth, timeout=self._timeout)

        self._token = token
        self._client.headers["Authorization"] = token.authorization_header()
        self._state = RunnerState.AUTHENTICATED
        logger.info(
            "Logged in successfully: scenario=%s, user=%d",
            self.scenario.name,
            self.user_id,
            extra={"scenario": self.scenario.name, "user_id": self.user_id},
        )
        return token

    async def run(self) -> list[CheckResult]:
        """Replay every group once, in declared order.

        A failed check or a transport error never stops the iteration;
        both are recorded and execution moves on to the next request.

        Returns:
            One CheckResult per request, in execution order.

        Raises:
            EngineError: If called before a successful ``setup()`` or
                outside the async context manager.
        """
        if self._state is not RunnerState.AUTHENTICATED:
            msg = "run() requires a successful setup() first"
            raise EngineError(msg)
        if not self._client_open:
            msg = "ScenarioRunner must be used as an async context manager"
            raise EngineError(msg)

        iteration = self._iteration
        self._iteration += 1

        results: list[CheckResult] = []
        for group in self.scenario.groups:
            for spec in group.requests:
                check = await self._execute(group, spec, iteration)
                results.append(check)
                self._on_check(check)

                if spec.post_delay_seconds:
                    await asyncio.sleep(spec.post_delay_seconds)

        return results

    async def _execute(self, group: Group, spec: RequestSpec, iteration: int) -> CheckResult:
        """Send one request and compare its status with the expected one."""
        url = self._client.url_for(spec.path)
        context = {
            "scenario": self.scenario.name,
            "user_id": self.user_id,
            "iteration": iteration,
            "label": spec.label,
        }

        try:
            resp = await self._client.request(
                spec.method.value,
                spec.path,
                json_body=spec.body,
            )
        except TransportError as exc:
            logger.warning("Request %s failed: %s", spec.label, exc, extra=context)
            return CheckResult(
                request_label=spec.label,
                group=group.name,
                method=spec.method.value,
                url=url,
                expected_status=spec.expected_status,
                observed_status=None,
                passed=False,
                error=str(exc),
                user_id=self.user_id,
                iteration=iteration,
            )

        passed = resp.status == spec.expected_status
        if passed:
            logger.debug(
                "%s -> %d (%.1fms)",
                spec.label,
                resp.status,
                resp.latency_ms,
                extra={**context, "status": resp.status},
            )
        else:
            logger.warning(
                "Check failed for %s: expected %d, got %d",
                spec.label,
                spec.expected_status,
                resp.status,
                extra={**context, "status": resp.status},
            )

        return CheckResult(
            request_label=spec.label,
            group=group.name,
            method=spec.method.value,
            url=url,
            expected_status=spec.expected_status,
            observed_status=resp.status,
            passed=passed,
            latency_ms=resp.latency_ms,
            user_id=self.user_id,
            iteration=iteration,
        )


async def run_virtual_user(
    scenario: Scenario,
    *,
    iterations: int = 1,
    timeout: float = 30.0,
    on_check: Callable[[CheckResult], None] | None = None,
    user_id: int = 0,
) -> list[CheckResult]:
    """Run setup and then ``iterations`` passes over the scenario.

    Args:
        scenario: The scenario to execute.
        iterations: Number of times to replay the group list.
        timeout: Per-request timeout in seconds.
        on_check: Optional callback for each CheckResult.
        user_id: Virtual user identifier.

    Returns:
        Every CheckResult, in execution order.

    Raises:
        AuthError: If setup fails; no request is sent in that case.
    """
    results: list[CheckResult] = []
    async with ScenarioRunner(
        scenario, timeout=timeout, on_check=on_check, user_id=user_id
    ) as runner:
        await runner.setup()
        for _ in range(iterations):
            results.extend(await runner.run())
    return results
