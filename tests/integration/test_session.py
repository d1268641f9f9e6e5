"""Integration tests for LoadSession with several virtual users."""

from __future__ import annotations

import asyncio

import pytest

from loadcheck._internal.errors import EngineError
from loadcheck.dsl.scenario import HttpMethod, RequestSpec
from loadcheck.engine.session import LoadSession, SessionState
from loadcheck.metrics.models import CheckResult

CFG = "/api/v1/configservice"


@pytest.mark.timeout(30)
class TestLoadSession:
    async def test_single_user_single_iteration_by_default(self, trainticket_server, make_scenario):
        scenario = make_scenario(
            trainticket_server.base_url,
            {"w": [("GET", f"{CFG}/welcome", 200), ("GET", f"{CFG}/configs", 200)]},
        )
        session = LoadSession(scenario, handle_signals=False)
        assert session.state is SessionState.CREATED

        report = await session.run()

        assert session.state is SessionState.COMPLETED
        assert report.scenario_name == "Test Scenario"
        assert report.users == 1
        assert report.total_checks == 2
        assert report.passed == 2
        assert report.ok
        assert report.duration_seconds > 0

    async def test_multiple_users_each_log_in(self, trainticket_server, make_scenario):
        scenario = make_scenario(trainticket_server.base_url, {"w": [("GET", f"{CFG}/welcome", 200)]})
        session = LoadSession(scenario, users=3, iterations=2, handle_signals=False)

        report = await session.run()

        assert report.total_checks == 6
        assert {c.user_id for c in report.checks} == {0, 1, 2}
        logins = [r for r in trainticket_server.requests if r.path.endswith("/login")]
        assert len(logins) == 3

    async def test_checks_per_user_keep_declared_order(self, trainticket_server, make_scenario):
        scenario = make_scenario(
            trainticket_server.base_url,
            {
                "a": [("GET", f"{CFG}/welcome", 200)],
                "b": [("GET", f"{CFG}/configs", 200)],
            },
        )
        report = await LoadSession(scenario, users=2, iterations=2, handle_signals=False).run()

        for user_id in (0, 1):
            groups = [c.group for c in report.checks if c.user_id == user_id]
            assert groups == ["a", "b", "a", "b"]

    async def test_failed_checks_are_reported(self, trainticket_server, make_scenario):
        scenario = make_scenario(
            trainticket_server.base_url,
            {"w": [("GET", "/api/v1/test/status/503", 200), ("GET", f"{CFG}/welcome", 200)]},
        )
        report = await LoadSession(scenario, users=2, handle_signals=False).run()

        assert report.total_checks == 4
        assert report.failed == 2
        assert report.failed_labels == ["GET /api/v1/test/status/503"]
        assert report.labels["GET /api/v1/test/status/503"].observed_statuses == {503: 2}
        assert not report.ok

    async def test_bad_credentials_abort_users(self, trainticket_server, make_scenario):
        scenario = make_scenario(
            trainticket_server.base_url,
            {"w": [("GET", f"{CFG}/welcome", 200)]},
            password="wrong",  # noqa: S106
        )
        report = await LoadSession(scenario, users=2, handle_signals=False).run()

        assert report.aborted_users == 2
        assert report.total_checks == 0
        assert not report.ok
        assert trainticket_server.paths() == []

    async def test_duration_mode_stops_starting_iterations(self, trainticket_server, make_scenario):
        scenario = make_scenario(
            trainticket_server.base_url,
            {
                "w": [
                    RequestSpec(HttpMethod.GET, f"{CFG}/welcome", post_delay_seconds=0.05),
                ]
            },
        )
        session = LoadSession(scenario, duration_seconds=0.5, handle_signals=False)

        report = await session.run()

        assert report.total_checks > 1
        assert report.passed == report.total_checks
        assert report.duration_seconds < 5.0

    async def test_stop_finishes_current_iteration(self, trainticket_server, make_scenario):
        scenario = make_scenario(
            trainticket_server.base_url,
            {
                "w": [
                    RequestSpec(HttpMethod.GET, f"{CFG}/welcome", post_delay_seconds=0.05),
                    RequestSpec(HttpMethod.GET, f"{CFG}/configs", post_delay_seconds=0.05),
                ]
            },
        )
        first_check = asyncio.Event()

        def _on_check(check: CheckResult) -> None:
            first_check.set()

        session = LoadSession(
            scenario, duration_seconds=60.0, on_check=_on_check, handle_signals=False
        )
        task = asyncio.create_task(session.run())
        await first_check.wait()
        await session.stop()
        report = await task

        # The iteration in flight completes, so checks come in whole passes.
        assert report.total_checks % 2 == 0
        assert report.total_checks >= 2
        assert session.state is SessionState.COMPLETED

    async def test_on_check_sees_every_result(self, trainticket_server, make_scenario):
        scenario = make_scenario(trainticket_server.base_url, {"w": [("GET", f"{CFG}/welcome", 200)]})
        seen: list[CheckResult] = []
        session = LoadSession(
            scenario, users=2, iterations=2, on_check=seen.append, handle_signals=False
        )

        report = await session.run()

        assert len(seen) == 4
        assert len(session.collector) == 4
        assert report.checks == list(session.collector.build_report().checks)

    async def test_run_only_once(self, trainticket_server, make_scenario):
        scenario = make_scenario(trainticket_server.base_url, {"w": [("GET", f"{CFG}/welcome", 200)]})
        session = LoadSession(scenario, handle_signals=False)
        await session.run()

        with pytest.raises(EngineError, match="only be run once"):
            await session.run()


class TestLoadSessionValidation:
    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"users": 0}, "users must be >= 1"),
            ({"iterations": 0}, "iterations must be >= 1"),
            ({"duration_seconds": 0}, "duration must be positive"),
            ({"duration_seconds": -1.0}, "duration must be positive"),
        ],
    )
    def test_invalid_arguments(self, make_scenario, kwargs, match):
        scenario = make_scenario("http://svc", {"w": [("GET", "/welcome", 200)]})
        with pytest.raises(EngineError, match=match):
            LoadSession(scenario, **kwargs)
