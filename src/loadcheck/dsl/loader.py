"""Scenario file loading from YAML or JSON."""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from loadcheck._internal.errors import ScenarioError
from loadcheck.dsl.scenario import (
    DEFAULT_LOGIN_PATH,
    AuthSpec,
    Credentials,
    Group,
    HttpMethod,
    RequestSpec,
    Scenario,
    bind_path,
)

if TYPE_CHECKING:
    from loadcheck._internal.config import RunnerConfig

_SUFFIXES = {".yaml", ".yml", ".json"}


def load_scenario(file_path: str | Path, config: RunnerConfig | None = None) -> Scenario:
    """Load a scenario from a YAML or JSON file.

    Overrides from ``config`` are applied before request delays are
    resolved, so an overridden sleep duration reaches every request
    declared with ``sleep: true``.

    Args:
        file_path: Path to the scenario file.
        config: Optional per-run overrides.

    Returns:
        The validated, immutable Scenario.

    Raises:
        ScenarioError: If the file does not exist, cannot be parsed, or
            describes an invalid scenario.
    """
    path = Path(file_path)

    if not path.exists():
        msg = f"Scenario file not found: {path}"
        raise ScenarioError(msg)

    if path.suffix.lower() not in _SUFFIXES:
        msg = f"Scenario file must be .yaml, .yml or .json, got: {path}"
        raise ScenarioError(msg)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        msg = f"Failed to parse scenario file {path}: {exc}"
        raise ScenarioError(msg) from exc

    if not isinstance(data, dict):
        msg = f"Scenario file {path} must contain a mapping"
        raise ScenarioError(msg)

    try:
        return build_scenario(data, default_name=path.stem, config=config)
    except ScenarioError as exc:
        msg = f"{path}: {exc}"
        raise ScenarioError(msg) from exc


def build_scenario(
    data: dict[str, Any],
    *,
    default_name: str = "scenario",
    config: RunnerConfig | None = None,
) -> Scenario:
    """Build a Scenario from an already-parsed mapping.

    Args:
        data: Parsed scenario document.
        default_name: Name used when the document has no ``name`` key.
        config: Optional per-run overrides.

    Raises:
        ScenarioError: If the document is invalid.
    """
    auth_data = data.get("auth")
    if not isinstance(auth_data, dict):
        msg = "'auth' must be a mapping with url, username and password"
        raise ScenarioError(msg)

    base_url = _pick(config and config.base_url, data.get("base_url"))
    auth_url = _pick(config and config.auth_url, auth_data.get("url"))
    username = _pick(config and config.username, auth_data.get("username"))
    password = _pick(config and config.password, auth_data.get("password"))

    if not base_url:
        msg = "'base_url' is required"
        raise ScenarioError(msg)
    if not auth_url:
        msg = "'auth.url' is required"
        raise ScenarioError(msg)
    if username is None or password is None:
        msg = "'auth.username' and 'auth.password' are required"
        raise ScenarioError(msg)

    login_path = auth_data.get("login_path", DEFAULT_LOGIN_PATH)
    if not isinstance(login_path, str) or not login_path:
        msg = f"'auth.login_path' must be a non-empty string, got: {login_path!r}"
        raise ScenarioError(msg)
    if not login_path.startswith("/"):
        login_path = f"/{login_path}"

    if config is not None and config.sleep_duration is not None:
        sleep_duration = config.sleep_duration
    else:
        sleep_duration = _as_delay(data.get("sleep_duration", 0.0), "sleep_duration")

    raw_groups = data.get("groups")
    if not isinstance(raw_groups, list) or not raw_groups:
        msg = "'groups' must be a non-empty list"
        raise ScenarioError(msg)

    groups = tuple(
        _build_group(raw, index, sleep_duration) for index, raw in enumerate(raw_groups)
    )

    return Scenario(
        name=str(data.get("name") or default_name),
        base_url=str(base_url).rstrip("/"),
        auth=AuthSpec(
            url=str(auth_url).rstrip("/"),
            credentials=Credentials(username=str(username), password=str(password)),
            login_path=login_path,
        ),
        groups=groups,
        sleep_duration=sleep_duration,
    )


def _pick(override: object, declared: object) -> Any:
    return override if override is not None else declared


def _as_delay(value: object, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"{where} must be a number, got: {value!r}"
        raise ScenarioError(msg)
    if not math.isfinite(value):
        msg = f"{where} must be finite, got: {value}"
        raise ScenarioError(msg)
    if value < 0:
        msg = f"{where} must be >= 0, got: {value}"
        raise ScenarioError(msg)
    return float(value)


def _build_group(raw: object, index: int, sleep_duration: float) -> Group:
    where = f"groups[{index}]"
    if not isinstance(raw, dict):
        msg = f"{where} must be a mapping"
        raise ScenarioError(msg)

    params = raw.get("params") or {}
    if not isinstance(params, dict):
        msg = f"{where}.params must be a mapping"
        raise ScenarioError(msg)

    raw_requests = raw.get("requests")
    if not isinstance(raw_requests, list) or not raw_requests:
        msg = f"{where}.requests must be a non-empty list"
        raise ScenarioError(msg)

    requests = tuple(
        _build_request(item, f"{where}.requests[{i}]", params, sleep_duration)
        for i, item in enumerate(raw_requests)
    )
    return Group(name=str(raw.get("name") or f"group-{index + 1}"), requests=requests)


def _build_request(
    raw: object,
    where: str,
    params: dict[str, object],
    sleep_duration: float,
) -> RequestSpec:
    if not isinstance(raw, dict):
        msg = f"{where} must be a mapping"
        raise ScenarioError(msg)

    method_name = str(raw.get("method", "GET")).upper()
    try:
        method = HttpMethod(method_name)
    except ValueError:
        allowed = ", ".join(m.value for m in HttpMethod)
        msg = f"{where}.method must be one of {allowed}, got: {method_name!r}"
        raise ScenarioError(msg) from None

    template = raw.get("path")
    if not isinstance(template, str) or not template:
        msg = f"{where}.path is required"
        raise ScenarioError(msg)
    if not template.startswith("/"):
        template = f"/{template}"

    expected = raw.get("expect", 200)
    if isinstance(expected, bool) or not isinstance(expected, int) or not 100 <= expected <= 599:
        msg = f"{where}.expect must be an HTTP status code, got: {expected!r}"
        raise ScenarioError(msg)

    sleep = raw.get("sleep")
    if sleep is None or sleep is False:
        delay = None
    elif sleep is True:
        delay = sleep_duration
    else:
        delay = _as_delay(sleep, f"{where}.sleep")

    try:
        path = bind_path(template, params)
    except ScenarioError as exc:
        msg = f"{where}: {exc}"
        raise ScenarioError(msg) from None

    # Unquoted YAML dates and timestamps load as date objects, which the
    # HTTP client cannot encode.
    body = raw.get("body")
    try:
        json.dumps(body)
    except (TypeError, ValueError) as exc:
        msg = f"{where}.body is not JSON-serializable (quote dates and timestamps): {exc}"
        raise ScenarioError(msg) from None

    name = raw.get("name")
    return RequestSpec(
        method=method,
        path=path,
        expected_status=expected,
        body=body,
        post_delay_seconds=delay if delay else None,
        name=str(name) if name else None,
    )
