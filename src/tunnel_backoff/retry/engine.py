"""
Retry engine facade.

Entry point for one slot: callers report tunnel bring-up errors per APN
and get back how long to wait before the next attempt. The engine ties
together:

    1. PolicyLoader: carrier config text -> PolicyTable (default on rejection)
    2. PolicyMatcher: (APN, error) -> most specific ErrorPolicy
    3. RetryLedger: per-APN, per-cause retry state and delays
    4. UnthrottleCoordinator: event-driven early clearing of APN state

All public operations are serialized by a re-entrant lock. Delays are
advisory: the engine never sleeps or schedules anything itself.

Usage:
    engine = RetryEngine(settings, carrier_config=raw_json)
    delay = engine.report_error("ims", ErrorDescriptor.protocol(24))
    if engine.can_attempt("ims"):
        ...
"""

import random
import threading
import time
from typing import Callable, Optional, Union

import structlog

from tunnel_backoff.config import Settings
from tunnel_backoff.loader import PolicyConfigError, PolicyLoader
from tunnel_backoff.models.enums import FailureCause, ThrottleEvent
from tunnel_backoff.models.error_descriptor import ErrorDescriptor
from tunnel_backoff.models.policy import PolicySource, PolicyTable
from tunnel_backoff.monitoring.metrics import (
    errors_reported_total,
    ledger_resets_total,
    policy_config_loads_total,
    retry_delay_seconds,
    unthrottle_total,
)
from tunnel_backoff.retry.failure_cause import derive_failure_cause
from tunnel_backoff.retry.ledger import NO_ERROR_RETRY_TIME, RetryLedger
from tunnel_backoff.retry.matcher import PolicyMatcher
from tunnel_backoff.retry.stats import ErrorStats
from tunnel_backoff.retry.unthrottle import UnthrottleCoordinator, UnthrottleListener

logger = structlog.get_logger(__name__)


class RetryEngine:
    """
    Per-slot retry/backoff engine.

    The built-in default table is loaded once at construction; failure to
    load it raises DefaultPolicyError. A carrier configuration that fails
    validation is logged and ignored, leaving the default in force.

    Attributes:
        settings: Application settings
        slot_id: Line/slot identifier bound into every log event
        error_stats: Bounded per-APN report counters
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        carrier_config: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        unthrottle_listener: Optional[UnthrottleListener] = None,
        slot_id: int = 0,
        loader: Optional[PolicyLoader] = None,
    ):
        """
        Initialize retry engine.

        Args:
            settings: Application settings (defaults to environment)
            carrier_config: Raw carrier policy JSON, None if the carrier has none
            clock: Monotonic clock in seconds
            rng: Random source for randomized retry delays
            unthrottle_listener: Notified when an APN is unthrottled by an event
            slot_id: Line/slot identifier
            loader: Policy loader (defaults to one built from settings)

        Raises:
            DefaultPolicyError: If the built-in default policies cannot be loaded
        """
        self.settings = settings or Settings()
        self.slot_id = slot_id
        self._log = logger.bind(slot_id=slot_id)
        self._lock = threading.RLock()
        self._loader = loader or PolicyLoader(self.settings)

        self._default_table = self._loader.load_default()
        self._count_config_load(PolicySource.DEFAULT, "accepted")

        self._ledger = RetryLedger(clock=clock, rng=rng)
        self._coordinator = UnthrottleCoordinator(self._ledger, unthrottle_listener)
        self.error_stats = ErrorStats(
            max_apns=self.settings.ERROR_STATS_MAX_APNS,
            max_errors=self.settings.ERROR_STATS_MAX_ERRORS,
        )
        self._most_recent_error: Optional[ErrorDescriptor] = None
        self._matcher = self._build_matcher(carrier_config)

        self._log.info(
            "RetryEngine initialized",
            app_name=self.settings.APP_NAME,
            app_version=self.settings.APP_VERSION,
            using_default_policies=self._matcher.using_default_only,
            subscribed_events=sorted(e.value for e in self.subscribed_events),
        )

    # === Configuration ===

    def _build_matcher(self, carrier_config: Optional[str]) -> PolicyMatcher:
        if carrier_config is None or not carrier_config.strip():
            self._count_config_load(PolicySource.CARRIER, "absent")
            self._log.info("No carrier error policies, using defaults")
            return PolicyMatcher(self._default_table)

        try:
            carrier_table: PolicyTable = self._loader.load(carrier_config, source=PolicySource.CARRIER)
        except PolicyConfigError as e:
            self._count_config_load(PolicySource.CARRIER, "rejected")
            self._log.warning(
                "Carrier error policies rejected, using defaults",
                stage=e.stage,
                error=e.message,
                details=e.details,
            )
            return PolicyMatcher(self._default_table)

        self._count_config_load(PolicySource.CARRIER, "accepted")
        return PolicyMatcher(self._default_table, carrier_table)

    def on_configuration_changed(self, carrier_config: Optional[str]) -> None:
        """
        Replace the carrier configuration and discard all retry state.

        State is discarded even when the new configuration is rejected or
        identical to the old one. The unthrottle listener is not notified.

        Args:
            carrier_config: Raw carrier policy JSON, None to use defaults only
        """
        with self._lock:
            cleared = self._ledger.clear_all()
            self._most_recent_error = None
            self._matcher = self._build_matcher(carrier_config)
            if cleared and self.settings.PROMETHEUS_ENABLED:
                ledger_resets_total.labels(reason="config_reload").inc(len(cleared))
            self._log.info(
                "Error policy configuration changed",
                cleared_apns=cleared,
                using_default_policies=self._matcher.using_default_only,
            )

    @property
    def using_default_policies(self) -> bool:
        """True when no carrier table is in force."""
        with self._lock:
            return self._matcher.using_default_only

    @property
    def subscribed_events(self) -> frozenset[ThrottleEvent]:
        """Events the host should deliver to on_event()."""
        with self._lock:
            return self._matcher.unthrottle_events | {ThrottleEvent.CARRIER_CONFIG_CHANGED_EVENT}

    # === Reporting ===

    def report_error(
        self,
        apn: str,
        error: ErrorDescriptor,
        backoff_seconds: Optional[int] = None,
    ) -> int:
        """
        Report the outcome of a tunnel bring-up attempt.

        Args:
            apn: APN name
            error: Reported error; ErrorDescriptor.no_error() on success
            backoff_seconds: Explicit delay from the network, overrides policy

        Returns:
            Seconds to wait before the next attempt, -1 for a NO_ERROR report

        Raises:
            ValueError: If backoff_seconds is not a non-negative integer
        """
        with self._lock:
            if error.is_no_error:
                self._most_recent_error = error
                had_state = self._ledger.clear_apn(apn)
                if had_state and self.settings.PROMETHEUS_ENABLED:
                    ledger_resets_total.labels(reason="no_error").inc()
                self._log.debug("APN retry state cleared", apn=apn)
                return NO_ERROR_RETRY_TIME

            policy = self._matcher.match(apn, error)
            delay = self._ledger.report(apn, error, policy, backoff_seconds)
            self._most_recent_error = error
            self.error_stats.update(apn, error)

            path = "policy" if backoff_seconds is None else "override"
            if self.settings.PROMETHEUS_ENABLED:
                errors_reported_total.labels(error_kind=error.kind.value, path=path).inc()
                retry_delay_seconds.labels(error_kind=error.kind.value).observe(delay)

            self._log.info(
                "Error reported",
                apn=apn,
                cause=error.cause_identity,
                path=path,
                delay_seconds=delay,
                policy_error_type=policy.error_type.value,
                attempt_count=self._ledger.attempt_count_of_last_cause(apn),
            )
            return delay

    # === Queries ===

    def can_attempt(self, apn: str) -> bool:
        with self._lock:
            return self._ledger.can_attempt(apn)

    def remaining_delay_ms(self, apn: str) -> int:
        """Milliseconds until the APN may be retried, -1 if it has no error."""
        with self._lock:
            return self._ledger.remaining_delay_ms(apn)

    def last_error(self, apn: str) -> ErrorDescriptor:
        with self._lock:
            return self._ledger.last_error(apn)

    def attempt_count_of_last_cause(self, apn: str) -> int:
        with self._lock:
            return self._ledger.attempt_count_of_last_cause(apn)

    def should_use_fresh_attach(self, apn: str) -> bool:
        """True when the next attempt should be an initial attach, not a handover."""
        with self._lock:
            return self._ledger.should_use_fresh_attach(apn)

    def current_alternate_index(self, apn: str, total_alternates: int) -> int:
        """
        Index of the alternate server identity to try next.

        Args:
            apn: APN name
            total_alternates: Number of alternate identities available (>= 1)

        Returns:
            Index in [0, total_alternates), or -1 if the APN has no error
            or its policy has no NumAttemptsPerFqdn

        Raises:
            ValueError: If total_alternates < 1
        """
        with self._lock:
            return self._ledger.current_alternate_index(apn, total_alternates)

    def failure_cause(self, apn: str) -> FailureCause:
        with self._lock:
            return derive_failure_cause(self._ledger.last_error(apn))

    def most_recent_failure_cause(self) -> FailureCause:
        """Failure cause of the last report on any APN, NONE if there was none."""
        with self._lock:
            if self._most_recent_error is None:
                return FailureCause.NONE
            return derive_failure_cause(self._most_recent_error)

    # === Events ===

    def on_event(self, event: Union[ThrottleEvent, str]) -> list[str]:
        """
        Apply an unthrottle event.

        Unknown event names are logged and ignored.

        Returns:
            APNs whose retry state was cleared
        """
        try:
            event = ThrottleEvent(event)
        except ValueError:
            self._log.warning("Ignoring unknown throttle event", throttle_event=str(event))
            return []

        with self._lock:
            cleared = self._coordinator.handle(event, self._matcher)
            if cleared and self.settings.PROMETHEUS_ENABLED:
                unthrottle_total.labels(event=event.value).inc(len(cleared))
                ledger_resets_total.labels(reason="event").inc(len(cleared))
            self._log.debug("Throttle event handled", throttle_event=event.value, cleared_apns=cleared)
            return cleared

    # === Diagnostics ===

    def dump(self) -> str:
        """Human-readable snapshot of retry state and error statistics."""
        with self._lock:
            lines = [
                f"---- RetryEngine slot {self.slot_id} ----",
                f"using_default_policies: {self._matcher.using_default_only}",
            ]
            for apn in self._ledger.apns:
                lines.append(f"APN: {apn}")
                lines.append(f"  last_error: {self._ledger.last_error(apn)}")
                for entry in self._ledger.entries(apn):
                    fields = ", ".join(f"{k}={v}" for k, v in entry.describe().items())
                    lines.append(f"  {fields}")
            lines.append(str(self.error_stats))
            return "\n".join(lines)

    def log_policies(self) -> None:
        """Log every policy of the carrier and default tables at debug level."""
        with self._lock:
            tables = [self._matcher.carrier_table, self._matcher.default_table]
            for table in tables:
                if table is None:
                    continue
                for policy in table:
                    self._log.debug("Error policy", source=table.source.value, **policy.describe())

    def _count_config_load(self, source: PolicySource, outcome: str) -> None:
        if self.settings.PROMETHEUS_ENABLED:
            policy_config_loads_total.labels(source=source.value, outcome=outcome).inc()
