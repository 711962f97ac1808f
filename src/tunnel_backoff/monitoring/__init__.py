"""Monitoring and metrics instrumentation for the tunnel backoff engine.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from tunnel_backoff.monitoring.metrics import (
    errors_reported_total,
    ledger_resets_total,
    policy_config_loads_total,
    retry_delay_seconds,
    unthrottle_total,
)

__all__ = [
    "errors_reported_total",
    "retry_delay_seconds",
    "unthrottle_total",
    "ledger_resets_total",
    "policy_config_loads_total",
]
