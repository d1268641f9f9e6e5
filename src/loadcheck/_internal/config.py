"""Run configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from loadcheck._internal.errors import ConfigError

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class RunnerConfig:
    """Per-run overrides applied on top of a scenario file.

    ``None`` means "keep the value declared in the scenario".

    Attributes:
        base_url: Base URL of the service under test.
        auth_url: Base URL of the auth service.
        username: Login username.
        password: Login password.
        sleep_duration: Seconds used by requests declared with ``sleep: true``.
        request_timeout: Total timeout for a single HTTP request in seconds.
    """

    base_url: str | None = None
    auth_url: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    sleep_duration: float | None = None
    request_timeout: float = DEFAULT_TIMEOUT

    def merged(self, **overrides: object) -> RunnerConfig:
        """Return a copy with every non-``None`` override applied.

        Used by the CLI so that flags take precedence over the environment
        while unset flags leave environment values in place.
        """
        changes = {key: value for key, value in overrides.items() if value is not None}
        if "sleep_duration" in changes:
            _check_sleep(changes["sleep_duration"])  # type: ignore[arg-type]
        if "request_timeout" in changes:
            _check_timeout(changes["request_timeout"])  # type: ignore[arg-type]
        return replace(self, **changes)  # type: ignore[arg-type]


def _check_sleep(value: float) -> None:
    if value < 0:
        msg = f"sleep duration must be >= 0, got: {value}"
        raise ConfigError(msg)


def _check_timeout(value: float) -> None:
    if value <= 0:
        msg = f"timeout must be positive, got: {value}"
        raise ConfigError(msg)


def _float_from_env(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None


def load_config() -> RunnerConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        LOADCHECK_BASE_URL: Base URL of the service under test.
        LOADCHECK_AUTH_URL: Base URL of the auth service.
        LOADCHECK_USERNAME: Login username.
        LOADCHECK_PASSWORD: Login password.
        LOADCHECK_SLEEP_DURATION: Seconds for ``sleep: true`` requests.
        LOADCHECK_TIMEOUT: Request timeout in seconds (default: 30.0).

    Returns:
        Populated RunnerConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    sleep_duration = _float_from_env("LOADCHECK_SLEEP_DURATION")
    if sleep_duration is not None:
        try:
            _check_sleep(sleep_duration)
        except ConfigError:
            msg = f"LOADCHECK_SLEEP_DURATION must be >= 0, got: {sleep_duration}"
            raise ConfigError(msg) from None

    timeout = _float_from_env("LOADCHECK_TIMEOUT")
    if timeout is None:
        timeout = DEFAULT_TIMEOUT
    elif timeout <= 0:
        msg = f"LOADCHECK_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    return RunnerConfig(
        base_url=os.environ.get("LOADCHECK_BASE_URL") or None,
        auth_url=os.environ.get("LOADCHECK_AUTH_URL") or None,
        username=os.environ.get("LOADCHECK_USERNAME") or None,
        password=os.environ.get("LOADCHECK_PASSWORD") or None,
        sleep_duration=sleep_duration,
        request_timeout=timeout,
    )
