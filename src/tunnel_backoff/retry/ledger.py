"""
Retry ledger: per-APN, per-cause retry bookkeeping.

Each (APN, cause identity) pair owns one LedgerEntry. Two counters live on
an entry and move independently:

- ``retry_index`` picks the next natural delay from the policy's retry
  array. Natural reports advance it; an explicit-backoff report resets it
  to 0, so the next natural report for that cause starts the array over.
- ``attempt_count`` counts every report of the cause since the APN was
  last cleared, natural or explicit. Handover fallback and alternate
  server cycling are driven by it.

The ledger does no locking; RetryEngine serializes access to it.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from tunnel_backoff.models.enums import PolicyErrorType
from tunnel_backoff.models.error_descriptor import ErrorDescriptor
from tunnel_backoff.models.policy import ErrorPolicy

logger = structlog.get_logger(__name__)

# Returned for a NO_ERROR report: nothing to wait for
NO_ERROR_RETRY_TIME = -1


@dataclass
class LedgerEntry:
    """
    Mutable retry state of one cause on one APN.

    Attributes:
        apn: APN name
        error: Most recent descriptor reported for this cause
        policy: Policy matched on the most recent report
        retry_index: Index of the next natural delay in policy.retry_delays
        attempt_count: Reports of this cause since the APN was last cleared
        last_report_time_ms: Clock time of the most recent report
        throttled_until_ms: No attempt should be made before this time
        last_delay_seconds: Delay returned by the most recent report
        overridden: True when the most recent report carried an explicit backoff
    """

    apn: str
    error: ErrorDescriptor
    policy: ErrorPolicy
    retry_index: int = 0
    attempt_count: int = 0
    last_report_time_ms: int = 0
    throttled_until_ms: int = 0
    last_delay_seconds: int = 0
    overridden: bool = False

    @property
    def cause_identity(self) -> str:
        return self.error.cause_identity

    def remaining_ms(self, now_ms: int) -> int:
        return max(0, self.throttled_until_ms - now_ms)

    def describe(self) -> dict:
        return {
            "cause": self.cause_identity,
            "retry_index": self.retry_index,
            "attempt_count": self.attempt_count,
            "last_report_time_ms": self.last_report_time_ms,
            "throttled_until_ms": self.throttled_until_ms,
            "last_delay_seconds": self.last_delay_seconds,
            "overridden": self.overridden,
        }


class RetryLedger:
    """
    Retry state for every APN of one engine.

    Args:
        clock: Monotonic clock in seconds (injectable for tests)
        rng: Random source for "N+rM" jitter
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self._clock = clock
        self._rng = rng or random.Random()
        self._entries: dict[str, dict[str, LedgerEntry]] = {}
        self._last_cause: dict[str, str] = {}

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    # === Mutations ===

    def report(
        self,
        apn: str,
        error: ErrorDescriptor,
        policy: Optional[ErrorPolicy] = None,
        backoff_seconds: Optional[int] = None,
    ) -> int:
        """
        Record a report and compute the delay before the next attempt.

        Args:
            apn: APN name
            error: Reported error
            policy: Policy matched for ``error`` (ignored for NO_ERROR)
            backoff_seconds: Explicit delay that overrides the policy

        Returns:
            Delay in seconds, or NO_ERROR_RETRY_TIME (-1) for NO_ERROR

        Raises:
            ValueError: If backoff_seconds is not a non-negative integer or
                policy is missing
        """
        if error.is_no_error:
            self.clear_apn(apn)
            return NO_ERROR_RETRY_TIME

        if policy is None:
            raise ValueError("policy is required for error reports")
        if backoff_seconds is not None and (
            isinstance(backoff_seconds, bool)
            or not isinstance(backoff_seconds, int)
            or backoff_seconds < 0
        ):
            raise ValueError(f"backoff_seconds must be a non-negative integer, got {backoff_seconds!r}")

        causes = self._entries.setdefault(apn, {})
        entry = causes.get(error.cause_identity)
        if entry is None:
            entry = LedgerEntry(apn=apn, error=error, policy=policy)
            causes[error.cause_identity] = entry
        else:
            entry.error = error
            entry.policy = policy

        entry.attempt_count += 1

        if backoff_seconds is not None:
            delay = backoff_seconds
            entry.retry_index = 0
            entry.overridden = True
        else:
            delay = policy.retry_delay(entry.retry_index).resolve(self._rng)
            entry.retry_index += 1
            entry.overridden = False

        now = self.now_ms()
        entry.last_report_time_ms = now
        entry.throttled_until_ms = now + delay * 1000
        entry.last_delay_seconds = delay
        self._last_cause[apn] = error.cause_identity

        logger.debug(
            "Ledger entry updated",
            apn=apn,
            cause=error.cause_identity,
            delay_seconds=delay,
            retry_index=entry.retry_index,
            attempt_count=entry.attempt_count,
            overridden=entry.overridden,
        )
        return delay

    def clear_apn(self, apn: str) -> bool:
        """Drop every entry and the last error of ``apn``; True if anything was held."""
        had_state = apn in self._entries or apn in self._last_cause
        self._entries.pop(apn, None)
        self._last_cause.pop(apn, None)
        return had_state

    def clear_all(self) -> list[str]:
        """Drop all state; returns the APNs that had any."""
        apns = sorted(set(self._entries) | set(self._last_cause))
        self._entries.clear()
        self._last_cause.clear()
        return apns

    # === Queries ===

    @property
    def apns(self) -> list[str]:
        """APNs that currently have a last error."""
        return list(self._last_cause)

    def entries(self, apn: str) -> tuple[LedgerEntry, ...]:
        return tuple(self._entries.get(apn, {}).values())

    def entry(self, apn: str, error: ErrorDescriptor) -> Optional[LedgerEntry]:
        return self._entries.get(apn, {}).get(error.cause_identity)

    def last_entry(self, apn: str) -> Optional[LedgerEntry]:
        cause = self._last_cause.get(apn)
        if cause is None:
            return None
        return self._entries[apn][cause]

    def last_error(self, apn: str) -> ErrorDescriptor:
        entry = self.last_entry(apn)
        return entry.error if entry else ErrorDescriptor.no_error()

    def remaining_delay_ms(self, apn: str) -> int:
        """Milliseconds until the most recent cause's throttle ends, -1 if none."""
        entry = self.last_entry(apn)
        return -1 if entry is None else entry.remaining_ms(self.now_ms())

    def can_attempt(self, apn: str) -> bool:
        entry = self.last_entry(apn)
        return entry is None or entry.remaining_ms(self.now_ms()) <= 0

    def attempt_count_of_last_cause(self, apn: str) -> int:
        entry = self.last_entry(apn)
        return 0 if entry is None else entry.attempt_count

    def should_use_fresh_attach(self, apn: str) -> bool:
        """
        True once repeated protocol errors reach the policy's handover
        attempt threshold.
        """
        entry = self.last_entry(apn)
        if entry is None:
            return False
        threshold = entry.policy.handover_attempt_threshold
        return (
            entry.policy.error_type == PolicyErrorType.IKE_PROTOCOL_ERROR_TYPE
            and threshold is not None
            and entry.attempt_count >= threshold
        )

    def current_alternate_index(self, apn: str, total_alternates: int) -> int:
        """
        Index (0..total_alternates-1) of the alternate server identity to
        use next, or -1 if there is no error or the policy does not cycle.

        Raises:
            ValueError: If total_alternates < 1
        """
        if total_alternates < 1:
            raise ValueError("total_alternates must be >= 1")
        entry = self.last_entry(apn)
        if entry is None:
            return -1
        return entry.policy.alternate_index(entry.attempt_count, total_alternates)
