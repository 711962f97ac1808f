"""
Parsed error policies and the policy table.

These are the typed, immutable products of the config loader. They know
how to match an ErrorDescriptor and how to pick a retry delay; they hold
no mutable retry state (see tunnel_backoff.retry.ledger for that).
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from tunnel_backoff.models.enums import (
    TIMEOUT_KINDS,
    GenericErrorDetail,
    PolicyErrorType,
    ThrottleEvent,
)
from tunnel_backoff.models.error_descriptor import ErrorDescriptor

WILDCARD = "*"

# Match ranks, lower is more specific
RANK_LITERAL = 0
RANK_DETAIL_WILDCARD = 1
RANK_ANY_ERROR_TYPE = 2


@dataclass(frozen=True)
class RetryDelay:
    """
    One RetryArray element: ``base`` seconds plus up to ``jitter`` seconds.

    Config forms: "N" (jitter 0) and "N+rM".
    """

    base: int
    jitter: int = 0

    def __post_init__(self) -> None:
        if self.base < 0 or self.jitter < 0:
            raise ValueError("retry delay components must be >= 0")

    def resolve(self, rng: random.Random) -> int:
        """Concrete delay in seconds; jitter is drawn uniformly from 0..jitter."""
        if not self.jitter:
            return self.base
        return self.base + rng.randint(0, self.jitter)

    def __str__(self) -> str:
        return f"{self.base}+r{self.jitter}" if self.jitter else str(self.base)


@dataclass(frozen=True)
class ErrorDetailPattern:
    """
    One ErrorDetails element: wildcard, inclusive code range, or literal.

    Protocol literals are stored as a degenerate range (low == high).
    """

    raw: str
    low: Optional[int] = None
    high: Optional[int] = None
    token: Optional[GenericErrorDetail] = None

    @property
    def is_wildcard(self) -> bool:
        return self.raw == WILDCARD

    def matches(self, error: ErrorDescriptor) -> bool:
        """Literal or range hit (wildcards are handled by the policy)."""
        if self.low is not None and self.high is not None:
            return error.is_protocol_error and self.low <= error.protocol_code <= self.high
        if self.token is not None:
            if self.token == GenericErrorDetail.TIMEOUT_EXCEPTION and error.kind in TIMEOUT_KINDS:
                return True
            return error.generic_detail == self.token
        return False


@dataclass(frozen=True)
class ErrorPolicy:
    """
    A single carrier (or default) error policy.

    Attributes:
        apn_match: APN name this policy was declared under ("*" for all)
        error_type: Error type the policy applies to
        error_details: Literal / range / wildcard patterns
        retry_delays: Ordered retry delays (seconds); the last one repeats
        repeats_last: True when the config ended RetryArray with "-1"
        unthrottle_events: Events that clear throttling for this policy
        attempts_per_alternate: Attempts against one alternate server
            identity before rotating to the next
        handover_attempt_threshold: Attempts after which a handover should
            fall back to a fresh attach
    """

    apn_match: str
    error_type: PolicyErrorType
    error_details: tuple[ErrorDetailPattern, ...]
    retry_delays: tuple[RetryDelay, ...]
    repeats_last: bool = False
    unthrottle_events: frozenset[ThrottleEvent] = field(default_factory=frozenset)
    attempts_per_alternate: Optional[int] = None
    handover_attempt_threshold: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate policy invariants."""
        if not self.retry_delays:
            raise ValueError("retry_delays must not be empty")
        if self.handover_attempt_threshold is not None and self.error_type != PolicyErrorType.IKE_PROTOCOL_ERROR_TYPE:
            raise ValueError("handover_attempt_threshold requires IKE_PROTOCOL_ERROR_TYPE")

    @property
    def is_fallback(self) -> bool:
        return self.error_type == PolicyErrorType.ANY or all(p.is_wildcard for p in self.error_details)

    def match_rank(self, error: ErrorDescriptor) -> Optional[int]:
        """
        How specifically this policy matches ``error``.

        Returns:
            RANK_LITERAL, RANK_DETAIL_WILDCARD, RANK_ANY_ERROR_TYPE, or None
            when the policy does not apply
        """
        if self.error_type == PolicyErrorType.ANY:
            return RANK_ANY_ERROR_TYPE
        if self.error_type == PolicyErrorType.IKE_PROTOCOL_ERROR_TYPE and not error.is_protocol_error:
            return None
        if self.error_type == PolicyErrorType.GENERIC_ERROR_TYPE and error.generic_detail is None:
            return None

        has_wildcard = False
        for pattern in self.error_details:
            if pattern.is_wildcard:
                has_wildcard = True
            elif pattern.matches(error):
                return RANK_LITERAL
        return RANK_DETAIL_WILDCARD if has_wildcard else None

    def retry_delay(self, index: int) -> RetryDelay:
        """Delay for the ``index``-th natural retry; the last value repeats forever."""
        if index < 0:
            raise ValueError("retry index must be >= 0")
        return self.retry_delays[min(index, len(self.retry_delays) - 1)]

    def can_unthrottle(self, event: ThrottleEvent) -> bool:
        return event in self.unthrottle_events

    def alternate_index(self, attempt_count: int, total_alternates: int) -> int:
        """
        Index of the alternate server identity to use, or -1 when this
        policy does not cycle alternates.
        """
        if self.attempts_per_alternate is None:
            return -1
        return (attempt_count // self.attempts_per_alternate) % total_alternates

    def describe(self) -> dict:
        """Plain dict view for logging and dumps."""
        return {
            "apn": self.apn_match,
            "error_type": self.error_type.value,
            "error_details": [p.raw for p in self.error_details],
            "retry_delays": [str(d) for d in self.retry_delays] + (["-1"] if self.repeats_last else []),
            "unthrottle_events": sorted(e.value for e in self.unthrottle_events),
            "attempts_per_alternate": self.attempts_per_alternate,
            "handover_attempt_threshold": self.handover_attempt_threshold,
        }


class PolicySource(str, Enum):
    CARRIER = "carrier"
    DEFAULT = "default"


class PolicyTable:
    """
    Immutable lookup structure: APN name -> policies in config order.

    Built fresh on every successful load and shared read-only afterwards.
    """

    __slots__ = ("_groups", "_source")

    def __init__(self, groups: Mapping[str, tuple[ErrorPolicy, ...]], source: PolicySource):
        self._groups = MappingProxyType({apn: tuple(policies) for apn, policies in groups.items()})
        self._source = source

    @property
    def source(self) -> PolicySource:
        return self._source

    @property
    def apns(self) -> tuple[str, ...]:
        return tuple(self._groups)

    def group(self, apn: str) -> tuple[ErrorPolicy, ...]:
        return self._groups.get(apn, ())

    def __contains__(self, apn: object) -> bool:
        return apn in self._groups

    def __len__(self) -> int:
        return sum(len(policies) for policies in self._groups.values())

    def __iter__(self) -> Iterator[ErrorPolicy]:
        for policies in self._groups.values():
            yield from policies

    @property
    def unthrottle_events(self) -> frozenset[ThrottleEvent]:
        events: set[ThrottleEvent] = set()
        for policy in self:
            events.update(policy.unthrottle_events)
        return frozenset(events)

    @property
    def has_universal_fallback(self) -> bool:
        """True if the "*" APN group has a "*" error-type policy."""
        return any(p.error_type == PolicyErrorType.ANY for p in self.group(WILDCARD))

    def __repr__(self) -> str:
        return f"PolicyTable(source={self._source.value}, apns={list(self._groups)}, policies={len(self)})"
