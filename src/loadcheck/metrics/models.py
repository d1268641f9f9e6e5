"""Check result and report dataclasses for loadcheck."""

from __future__ import annotations

from dataclasses import dataclass, field

from loadcheck._internal.errors import CheckFailure

__all__ = [
    "CheckReport",
    "CheckResult",
    "LabelSummary",
]


@dataclass(frozen=True)
class CheckResult:
    """Outcome of comparing one response status with the expected one.

    Attributes:
        request_label: Label of the request that was checked.
        group: Name of the group the request belongs to.
        method: HTTP method used.
        url: Full request URL.
        expected_status: Status the request was expected to return.
        observed_status: Status actually returned, or None when the request
            never got a response (connection refused, timeout).
        passed: True iff observed_status equals expected_status.
        latency_ms: Response time in milliseconds (0.0 on transport errors).
        error: Transport error description, if any.
        user_id: Virtual user that issued the request.
        iteration: Zero-based iteration of that virtual user.
    """

    request_label: str
    group: str
    method: str
    url: str
    expected_status: int
    observed_status: int | None
    passed: bool
    latency_ms: float = 0.0
    error: str | None = None
    user_id: int = 0
    iteration: int = 0


@dataclass
class LabelSummary:
    """Aggregated checks for a single request label.

    Attributes:
        label: Request label.
        group: Group the label belongs to.
        count: Number of checks recorded.
        passed: Number of passing checks.
        failed: Number of failing checks.
        transport_errors: Failing checks that had no response at all.
        observed_statuses: Count of each observed status code.
        latency_avg: Mean response time in milliseconds.
        latency_p50: 50th percentile response time in milliseconds.
        latency_p95: 95th percentile response time in milliseconds.
        latency_p99: 99th percentile response time in milliseconds.
    """

    label: str
    group: str
    count: int = 0
    passed: int = 0
    failed: int = 0
    transport_errors: int = 0
    observed_statuses: dict[int, int] = field(default_factory=dict)
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0


@dataclass
class CheckReport:
    """Complete result of a scenario run.

    Attributes:
        scenario_name: Name of the scenario that was executed.
        duration_seconds: Wall-clock duration of the run.
        users: Number of virtual users started.
        aborted_users: Virtual users that failed setup and sent nothing.
        total_checks: Number of checks recorded.
        passed: Number of passing checks.
        failed: Number of failing checks.
        failed_labels: Labels with at least one failure, in first-seen order.
        labels: Per-label summaries keyed by label.
        checks: Every recorded check, in recording order.
    """

    scenario_name: str
    duration_seconds: float = 0.0
    users: int = 0
    aborted_users: int = 0
    total_checks: int = 0
    passed: int = 0
    failed: int = 0
    failed_labels: list[str] = field(default_factory=list)
    labels: dict[str, LabelSummary] = field(default_factory=dict)
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def pass_rate(self) -> float:
        """Fraction of checks that passed (1.0 when nothing ran)."""
        if self.total_checks == 0:
            return 1.0
        return self.passed / self.total_checks

    @property
    def ok(self) -> bool:
        """True when no check failed and no virtual user was aborted."""
        return self.failed == 0 and self.aborted_users == 0

    def raise_for_failures(self) -> None:
        """Raise ``CheckFailure`` if any check failed.

        Raises:
            CheckFailure: Carrying the failing labels.
        """
        if self.failed:
            raise CheckFailure(self.failed_labels)
