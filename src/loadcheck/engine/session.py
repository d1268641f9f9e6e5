"""Virtual user session: many independent runners sharing one scenario."""

from __future__ import annotations

import asyncio
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from loadcheck._internal.errors import AuthError, EngineError
from loadcheck._internal.logging import get_logger
from loadcheck.engine.runner import ScenarioRunner
from loadcheck.metrics.collector import CheckCollector

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadcheck.dsl.scenario import Scenario
    from loadcheck.metrics.models import CheckReport, CheckResult

logger = get_logger("engine.session")

# Seconds users get to finish their in-flight iteration after a stop.
SHUTDOWN_GRACE_SECONDS = 5.0


class SessionState(Enum):
    """State machine for a session."""

    CREATED = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    FAILED = auto()


class LoadSession:
    """Runs ``users`` virtual users, each with its own runner and token.

    Each virtual user logs in once, then replays the scenario until it has
    completed ``iterations`` passes, ``duration_seconds`` has elapsed, or a
    stop is requested. A stop never interrupts a request: users finish the
    current iteration and are only cancelled if they exceed the grace
    period.

    State machine: CREATED -> RUNNING -> STOPPING -> COMPLETED
                                      -> FAILED (on error)
    """

    def __init__(
        self,
        scenario: Scenario,
        *,
        users: int = 1,
        iterations: int | None = None,
        duration_seconds: float | None = None,
        timeout: float = 30.0,
        on_check: Callable[[CheckResult], None] | None = None,
        handle_signals: bool = True,
        grace_seconds: float = SHUTDOWN_GRACE_SECONDS,
    ) -> None:
        """Initialize a session.

        Args:
            scenario: The scenario every virtual user executes.
            users: Number of concurrent virtual users.
            iterations: Passes per virtual user. Defaults to 1 when no
                duration is given, unlimited otherwise.
            duration_seconds: Stop starting new iterations after this long.
            timeout: Per-request timeout in seconds.
            on_check: Optional callback invoked with every CheckResult, in
                addition to the session's own collector.
            handle_signals: Install SIGINT/SIGTERM handlers for graceful stop.
            grace_seconds: How long stopped users may keep running before
                they are cancelled.

        Raises:
            EngineError: If users, iterations or duration are out of range.
        """
        if users < 1:
            msg = f"users must be >= 1, got {users}"
            raise EngineError(msg)
        if iterations is not None and iterations < 1:
            msg = f"iterations must be >= 1, got {iterations}"
            raise EngineError(msg)
        if duration_seconds is not None and duration_seconds <= 0:
            msg = f"duration must be positive, got {duration_seconds}"
            raise EngineError(msg)

        self._scenario = scenario
        self._users = users
        self._iterations = iterations if iterations is not None or duration_seconds else 1
        self._duration_seconds = duration_seconds
        self._timeout = timeout
        self._on_check = on_check
        self._handle_signals = handle_signals
        self._grace_seconds = grace_seconds

        self._state = SessionState.CREATED
        self._collector = CheckCollector(scenario.name)
        self._aborted_users = 0
        self._deadline: float | None = None
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> SessionState:
        """Return the current session state."""
        return self._state

    @property
    def collector(self) -> CheckCollector:
        """Collector receiving every check of this session."""
        return self._collector

    async def run(self) -> CheckReport:
        """Execute all virtual users and aggregate their checks.

        Returns:
            The aggregated CheckReport.

        Raises:
            EngineError: If the session encounters an unrecoverable error.
        """
        if self._state is not SessionState.CREATED:
            msg = "A LoadSession can only be run once"
            raise EngineError(msg)

        logger.info(
            "Starting session: scenario=%s, users=%d, iterations=%s, duration=%s",
            self._scenario.name,
            self._users,
            self._iterations if self._iterations is not None else "unlimited",
            f"{self._duration_seconds:.1f}s" if self._duration_seconds else "unbounded",
        )

        if self._handle_signals:
            self._install_signal_handlers()

        start_time = time.monotonic()
        if self._duration_seconds is not None:
            self._deadline = start_time + self._duration_seconds

        self._state = SessionState.RUNNING
        user_tasks = [
            asyncio.create_task(self._run_virtual_user(user_id), name=f"virtual-user-{user_id}")
            for user_id in range(self._users)
        ]

        try:
            all_done = asyncio.ensure_future(asyncio.wait(user_tasks))
            stopped = asyncio.ensure_future(self._stop_event.wait())
            try:
                await asyncio.wait(
                    {all_done, stopped},
                    timeout=self._duration_seconds,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                all_done.cancel()
                stopped.cancel()
        except Exception as exc:
            self._state = SessionState.FAILED
            logger.exception("Session failed")
            raise EngineError("Session failed") from exc
        finally:
            if self._state is not SessionState.FAILED:
                self._state = SessionState.STOPPING
            await self._shutdown_users(user_tasks)
            if self._handle_signals:
                self._remove_signal_handlers()

        duration = time.monotonic() - start_time
        report = self._collector.build_report(
            duration_seconds=duration,
            users=self._users,
            aborted_users=self._aborted_users,
        )

        self._state = SessionState.COMPLETED
        logger.info(
            "Session completed: duration=%.1fs, checks=%d, passed=%d, failed=%d, aborted_users=%d",
            duration,
            report.total_checks,
            report.passed,
            report.failed,
            report.aborted_users,
        )
        return report

    async def stop(self) -> None:
        """Request a graceful stop.

        Users finish their current iteration and start no new one.
        """
        if self._state is SessionState.RUNNING:
            logger.info("Graceful shutdown requested")
            self._state = SessionState.STOPPING
            self._stop_event.set()

    def _should_continue(self, completed_iterations: int) -> bool:
        if self._stop_event.is_set():
            return False
        if self._iterations is not None and completed_iterations >= self._iterations:
            return False
        return self._deadline is None or time.monotonic() < self._deadline

    def _record(self, check: CheckResult) -> None:
        self._collector.record(check)
        if self._on_check is not None:
            self._on_check(check)

    async def _run_virtual_user(self, user_id: int) -> None:
        """Run one virtual user: setup once, then iterate.

        Args:
            user_id: Unique identifier for this virtual user.
        """
        async with ScenarioRunner(
            self._scenario,
            timeout=self._timeout,
            on_check=self._record,
            user_id=user_id,
        ) as runner:
            try:
                await runner.setup()
            except AuthError as exc:
                self._aborted_users += 1
                logger.warning(
                    "Virtual user %d aborted, setup failed: %s",
                    user_id,
                    exc,
                    extra={"scenario": self._scenario.name, "user_id": user_id},
                )
                return

            completed = 0
            while self._should_continue(completed):
                try:
                    await runner.run()
                except EngineError:
                    logger.exception("Virtual user %d stopped unexpectedly", user_id)
                    self._aborted_users += 1
                    return
                completed += 1

            logger.debug("Virtual user %d finished after %d iteration(s)", user_id, completed)

    async def _shutdown_users(self, user_tasks: list[asyncio.Task[None]]) -> None:
        """Stop all virtual users, cancelling those past the grace period."""
        self._stop_event.set()

        pending = {t for t in user_tasks if not t.done()}
        if pending:
            _done, pending = await asyncio.wait(pending, timeout=self._grace_seconds)

        for task in pending:
            task.cancel()

        if pending:
            await asyncio.wait(pending, timeout=2.0)
            logger.warning("Cancelled %d virtual user(s) after grace period", len(pending))

        for task in user_tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                self._aborted_users += 1
                logger.error(
                    "Virtual user task %s crashed",
                    task.get_name(),
                    exc_info=task.exception(),
                )

        logger.debug("All virtual users shut down")

    def _install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self._state = SessionState.STOPPING
            self._stop_event.set()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)


def run_session(session: LoadSession) -> CheckReport:
    """Run a session to completion on a fresh event loop.

    Uses uvloop everywhere except Windows, where it is unavailable.

    Args:
        session: The session to execute.

    Returns:
        The session's CheckReport.
    """
    if sys.platform == "win32":
        return asyncio.run(session.run())

    import uvloop

    return uvloop.run(session.run())
