"""Custom Prometheus metrics for the tunnel backoff engine.

Collectors are process-wide; label values are bounded by the closed enums
in tunnel_backoff.models.enums. Alert rules should be configured for:
- policy_config_loads_total{outcome="rejected"} (carrier config being ignored)
- errors_reported_total (error storms on a slot)
- retry_delay_seconds (devices parked in long backoff)
"""

from prometheus_client import Counter, Histogram

# === Error Reporting Metrics ===

errors_reported_total = Counter(
    "tunnel_errors_reported_total",
    "Total errors reported to the backoff engine by error kind and path",
    ["error_kind", "path"],
)
"""
Reported errors counter.

Labels:
- error_kind: ErrorKind value (IKE_PROTOCOL_EXCEPTION, IKE_INTERNAL_IO_EXCEPTION, ...)
- path: policy (delay taken from the retry array), override (explicit backoff)

Alert thresholds:
- WARN: sustained rate > 1/min per device fleet segment
"""

retry_delay_seconds = Histogram(
    "tunnel_retry_delay_seconds",
    "Retry delay returned to callers in seconds",
    ["error_kind"],
    buckets=[0, 1, 5, 10, 30, 60, 300, 600, 1800, 3600, 86400],
)
"""
Returned retry delay histogram.

Labels:
- error_kind: ErrorKind value

Buckets span immediate retry (0s) to a full day of throttling.

Alert thresholds:
- WARN: p50 > 600s (most devices throttled for 10+ minutes)
"""

# === Throttle State Metrics ===

unthrottle_total = Counter(
    "tunnel_unthrottle_total",
    "APNs unthrottled ahead of their retry time, by event",
    ["event"],
)
"""
Early unthrottle counter.

Labels:
- event: ThrottleEvent value (APM_ENABLE_EVENT, WIFI_DISABLE_EVENT, ...)
"""

ledger_resets_total = Counter(
    "tunnel_ledger_resets_total",
    "APN retry ledger resets by reason",
    ["reason"],
)
"""
Ledger reset counter.

Labels:
- reason: no_error (successful bring-up), event (unthrottle event),
  config_reload (configuration changed)
"""

# === Configuration Metrics ===

policy_config_loads_total = Counter(
    "tunnel_policy_config_loads_total",
    "Policy configuration loads by source and outcome",
    ["source", "outcome"],
)
"""
Policy configuration load counter.

Labels:
- source: carrier, default
- outcome: accepted, rejected, absent

Alert thresholds:
- WARN: any outcome="rejected" (carrier policies silently replaced by defaults)
"""
