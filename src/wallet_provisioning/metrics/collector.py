"""Metrics collector — Prometheus counters and histograms.

- ``wallet_provisioning_total`` counter-vec (outcome)
- ``wallet_provisioning_duration_seconds`` histogram
- ``wallet_provisioning_recoveries_total`` counter-vec (result)
- ``wallet_challenge_outcomes_total`` counter-vec (outcome)
- ``wallet_provider_request_duration_seconds`` histogram-vec (operation)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "wallet"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`ProvisioningMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class ProvisioningMetrics:
    """High-level provisioning metrics.

    All histograms track operation duration in seconds.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._provisioning = self._collector.counter(
            f"{_PREFIX}_provisioning",
            "Finished wallet provisioning workflows by outcome",
            ("outcome",),
        )
        self._duration = self._collector.histogram(
            f"{_PREFIX}_provisioning_duration_seconds",
            "Duration of wallet provisioning workflows",
        )
        self._recoveries = self._collector.counter(
            f"{_PREFIX}_provisioning_recoveries",
            "Fallback recovery lookups after ambiguous failures by result",
            ("result",),
        )
        self._challenges = self._collector.counter(
            f"{_PREFIX}_challenge_outcomes",
            "Challenge ceremony outcomes",
            ("outcome",),
        )
        self._provider_requests = self._collector.histogram(
            f"{_PREFIX}_provider_request_duration_seconds",
            "Duration of custodial provider requests",
            ("operation",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    # -- Counters --

    def record_outcome(self, outcome: str) -> None:
        """Count a finished workflow (``done``, ``fatal``, ``timeout``, ``cancelled``)."""
        self._provisioning.labels(outcome=outcome).inc()

    def record_recovery(self, result: str) -> None:
        """Count a recovery lookup (``recovered``, ``absent``, ``failed``)."""
        self._recoveries.labels(result=result).inc()

    def record_challenge_outcome(self, outcome: str) -> None:
        """Count a challenge result (``success``, ``advisory``, ``fatal``, ``timeout``)."""
        self._challenges.labels(outcome=outcome).inc()

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_provisioning(self) -> Iterator[None]:
        """Track the duration of a whole provisioning workflow."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._duration.observe(time.monotonic() - start)

    @contextmanager
    def track_provider_request(self, operation: str) -> Iterator[None]:
        """Track the duration of one provider request."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._provider_requests.labels(operation=operation).observe(time.monotonic() - start)
