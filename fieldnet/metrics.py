"""Prometheus metrics for the field network service.

Tracks how hard the reconciliation loop is working against the controller:
configuration attempts, status reads, rejected requests and how long a
requested assignment takes to show up on the device.
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

config_attempts = Counter(
    "fieldnet_wifi_config_attempts_total",
    "WiFi configuration attempts against the controller",
    ["device", "outcome"],
)

status_reads = Counter(
    "fieldnet_status_reads_total",
    "Status reads against the controller",
    ["device", "outcome"],
)

requests_rejected = Counter(
    "fieldnet_config_requests_rejected_total",
    "Configuration requests rejected because the buffer was full",
    ["device"],
)

convergence_duration = Histogram(
    "fieldnet_wifi_convergence_seconds",
    "Time from picking up a configuration request to observing it applied",
    ["device"],
    buckets=(1, 5, 10, 20, 30, 60, 120, 300, float("inf")),
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
