"""Metrics — Prometheus metrics collection."""

from __future__ import annotations

from wallet_provisioning.metrics.collector import MetricsCollector, ProvisioningMetrics

__all__ = ["MetricsCollector", "ProvisioningMetrics"]
