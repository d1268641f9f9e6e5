"""Custom exception hierarchy for loadcheck."""

from __future__ import annotations


class LoadCheckError(Exception):
    """Base exception for all loadcheck errors.

    All custom exceptions in the package inherit from this class, making it
    easy to catch any loadcheck-specific error with a single except clause.
    """


class ScenarioError(LoadCheckError):
    """Raised when a scenario definition is invalid.

    Examples:
        - A scenario file cannot be read or parsed.
        - A request uses an unsupported HTTP method.
        - A path placeholder has no bound value.
    """


class ConfigError(LoadCheckError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Required environment variable has an invalid value.
        - Configuration value is out of acceptable range.
    """


class EngineError(LoadCheckError):
    """Raised when the runner is misused or a session cannot complete."""


class AuthError(LoadCheckError):
    """Raised when setup cannot obtain a usable bearer token.

    Fatal for the virtual user that raised it: no request is sent
    without a token.
    """


class TransportError(LoadCheckError):
    """Raised by the HTTP client on connection or timeout failures.

    The runner records it as a failed check with no observed status.
    """


class CheckFailure(LoadCheckError):
    """Raised when a completed report contains failed checks.

    Attributes:
        labels: Labels of the failing requests, in first-seen order.
    """

    def __init__(self, labels: list[str]) -> None:
        self.labels = list(labels)
        super().__init__(f"{len(self.labels)} check(s) failed: {', '.join(self.labels)}")
