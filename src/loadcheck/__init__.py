"""loadcheck: declarative authenticated HTTP scenarios with status checks."""

from __future__ import annotations

from loadcheck._internal.errors import (
    AuthError,
    CheckFailure,
    ConfigError,
    EngineError,
    LoadCheckError,
    ScenarioError,
    TransportError,
)
from loadcheck.dsl.loader import load_scenario
from loadcheck.dsl.scenario import AuthSpec, Credentials, Group, HttpMethod, RequestSpec, Scenario
from loadcheck.engine.auth import AuthToken
from loadcheck.engine.runner import ScenarioRunner, run_virtual_user
from loadcheck.engine.session import LoadSession
from loadcheck.metrics.models import CheckReport, CheckResult

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "AuthSpec",
    "AuthToken",
    "CheckFailure",
    "CheckReport",
    "CheckResult",
    "ConfigError",
    "Credentials",
    "EngineError",
    "Group",
    "HttpMethod",
    "LoadCheckError",
    "LoadSession",
    "RequestSpec",
    "Scenario",
    "ScenarioError",
    "ScenarioRunner",
    "TransportError",
    "load_scenario",
    "run_virtual_user",
]
