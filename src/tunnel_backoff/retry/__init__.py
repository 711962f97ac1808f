"""
Retry/backoff engine for tunnel bring-up errors.

Given an APN and an error, selects the most specific configured policy,
advances per-APN, per-cause retry state and returns the delay before the
next attempt.

Main Components:
    - RetryEngine: Thread-safe per-slot facade
    - PolicyMatcher: (APN, error) -> ErrorPolicy lookup
    - RetryLedger: Per-APN, per-cause retry bookkeeping
    - UnthrottleCoordinator: Event-driven early unthrottling
    - EngineRegistry: One engine per line/slot

Usage:
    >>> from tunnel_backoff.retry import RetryEngine
    >>> engine = RetryEngine(settings, carrier_config=raw_json)
    >>> delay = engine.report_error("ims", ErrorDescriptor.protocol(24))
"""

from tunnel_backoff.retry.engine import RetryEngine
from tunnel_backoff.retry.exceptions import NoMatchingPolicyError
from tunnel_backoff.retry.failure_cause import derive_failure_cause
from tunnel_backoff.retry.ledger import NO_ERROR_RETRY_TIME, LedgerEntry, RetryLedger
from tunnel_backoff.retry.matcher import PolicyMatcher
from tunnel_backoff.retry.registry import EngineRegistry
from tunnel_backoff.retry.stats import ErrorStats
from tunnel_backoff.retry.unthrottle import UnthrottleCoordinator, UnthrottleListener

__all__ = [
    "RetryEngine",
    "EngineRegistry",
    "PolicyMatcher",
    "RetryLedger",
    "LedgerEntry",
    "NO_ERROR_RETRY_TIME",
    "UnthrottleCoordinator",
    "UnthrottleListener",
    "ErrorStats",
    "derive_failure_cause",
    "NoMatchingPolicyError",
]
