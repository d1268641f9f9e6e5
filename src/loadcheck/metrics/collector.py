"""In-memory check collection and report aggregation."""

from __future__ import annotations

from collections import defaultdict, deque
from typing import TYPE_CHECKING

import numpy as np

from loadcheck._internal.logging import get_logger
from loadcheck.metrics.models import CheckReport, LabelSummary

if TYPE_CHECKING:
    from loadcheck.metrics.models import CheckResult

logger = get_logger("metrics.collector")


def _compute_latencies(latencies: list[float]) -> tuple[float, float, float, float]:
    """Compute latency statistics from a list of latency values.

    Args:
        latencies: Latency values in milliseconds.

    Returns:
        Tuple of (avg, p50, p95, p99).
    """
    if not latencies:
        return (0.0, 0.0, 0.0, 0.0)

    arr = np.array(latencies, dtype=np.float64)
    percentiles = np.percentile(arr, [50.0, 95.0, 99.0])

    return (
        float(np.mean(arr)),
        float(percentiles[0]),
        float(percentiles[1]),
        float(percentiles[2]),
    )


class CheckCollector:
    """Collects ``CheckResult`` objects as virtual users produce them.

    ``record`` is meant to be passed as the runner's ``on_check`` callback.
    Every virtual user of a session runs on the same event loop and records
    into one shared collector.

    Attributes:
        scenario_name: Scenario the checks belong to.
    """

    def __init__(self, scenario_name: str) -> None:
        self.scenario_name = scenario_name
        self._checks: deque[CheckResult] = deque()
        self._passed = 0
        self._failed = 0

    @property
    def passed(self) -> int:
        """Passing checks recorded so far."""
        return self._passed

    @property
    def failed(self) -> int:
        """Failing checks recorded so far."""
        return self._failed

    def __len__(self) -> int:
        return len(self._checks)

    def record(self, check: CheckResult) -> None:
        """Append a check to the collection.

        Args:
            check: The check result to record.
        """
        self._checks.append(check)
        if check.passed:
            self._passed += 1
        else:
            self._failed += 1

    def build_report(
        self,
        *,
        duration_seconds: float = 0.0,
        users: int = 0,
        aborted_users: int = 0,
    ) -> CheckReport:
        """Aggregate every recorded check into a ``CheckReport``.

        Does not clear the collection, so it may be called repeatedly.

        Args:
            duration_seconds: Wall-clock duration of the run.
            users: Number of virtual users started.
            aborted_users: Virtual users that failed setup.

        Returns:
            The aggregated report.
        """
        checks = list(self._checks)

        by_label: dict[str, list[CheckResult]] = defaultdict(list)
        failed_labels: list[str] = []
        for check in checks:
            by_label[check.request_label].append(check)
            if not check.passed and check.request_label not in failed_labels:
                failed_labels.append(check.request_label)

        labels: dict[str, LabelSummary] = {}
        for label, label_checks in by_label.items():
            statuses: dict[int, int] = defaultdict(int)
            for check in label_checks:
                if check.observed_status is not None:
                    statuses[check.observed_status] += 1

            # Transport failures have no latency worth reporting.
            latencies = [c.latency_ms for c in label_checks if c.observed_status is not None]
            avg, p50, p95, p99 = _compute_latencies(latencies)
            passed = sum(1 for c in label_checks if c.passed)

            labels[label] = LabelSummary(
                label=label,
                group=label_checks[0].group,
                count=len(label_checks),
                passed=passed,
                failed=len(label_checks) - passed,
                transport_errors=sum(1 for c in label_checks if c.observed_status is None),
                observed_statuses=dict(statuses),
                latency_avg=avg,
                latency_p50=p50,
                latency_p95=p95,
                latency_p99=p99,
            )

        report = CheckReport(
            scenario_name=self.scenario_name,
            duration_seconds=duration_seconds,
            users=users,
            aborted_users=aborted_users,
            total_checks=len(checks),
            passed=self._passed,
            failed=self._failed,
            failed_labels=failed_labels,
            labels=labels,
            checks=checks,
        )
        logger.debug(
            "Built report: checks=%d, passed=%d, failed=%d",
            report.total_checks,
            report.passed,
            report.failed,
        )
        return report

    def reset(self) -> None:
        """Clear all recorded checks. Primarily for testing."""
        self._checks.clear()
        self._passed = 0
        self._failed = 0
