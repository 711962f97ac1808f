"""
Error statistics.

Bounded per-APN, per-cause report counters kept for diagnostics. The
counters reset wholesale once either cap is hit so memory stays bounded.
"""

from datetime import datetime, timezone

from tunnel_backoff.models.error_descriptor import ErrorDescriptor


class ErrorStats:
    """
    Report counts keyed by APN then cause identity.

    Attributes:
        max_apns: Reset once this many APNs are tracked
        max_errors: Reset after this many reports
    """

    def __init__(self, max_apns: int = 10, max_errors: int = 1000):
        self.max_apns = max_apns
        self.max_errors = max_errors
        self.reset()

    def reset(self) -> None:
        self.start_time = datetime.now(timezone.utc)
        self.counts: dict[str, dict[str, int]] = {}
        self.total = 0

    def update(self, apn: str, error: ErrorDescriptor) -> None:
        if len(self.counts) >= self.max_apns or self.total >= self.max_errors:
            self.reset()
        per_apn = self.counts.setdefault(apn, {})
        per_apn[error.cause_identity] = per_apn.get(error.cause_identity, 0) + 1
        self.total += 1

    def count(self, apn: str, error: ErrorDescriptor) -> int:
        return self.counts.get(apn, {}).get(error.cause_identity, 0)

    def __str__(self) -> str:
        lines = [f"start_time: {self.start_time.isoformat()}", "ErrorStats"]
        for apn, per_apn in self.counts.items():
            lines.append(f"\tApn: {apn}")
            for cause, count in per_apn.items():
                lines.append(f"\t  {cause} : {count}")
        return "\n".join(lines)
