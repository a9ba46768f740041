"""
Monitoring Module

Provides Prometheus metrics for the worker.
"""

from spriteib.monitoring.metrics import Metrics, get_metrics
from spriteib.monitoring.prometheus_server import maybe_start_prometheus_http_server

__all__ = [
    "Metrics",
    "get_metrics",
    "maybe_start_prometheus_http_server",
]
