"""
Event-driven early unthrottling.

An event clears an APN's retry state when the policy matching the APN's
last error lists that event in its UnthrottlingEvents. A carrier config
change clears every APN regardless of policy.
"""

from typing import Optional, Protocol

import structlog

from tunnel_backoff.models.enums import ThrottleEvent
from tunnel_backoff.retry.ledger import RetryLedger
from tunnel_backoff.retry.matcher import PolicyMatcher

logger = structlog.get_logger(__name__)


class UnthrottleListener(Protocol):
    """
    Receives APNs whose throttling was lifted early.

    Called with the engine lock held: implementations must not call back
    into the engine synchronously.
    """

    def notify_apn_unthrottled(self, apn: str) -> None:
        ...


class UnthrottleCoordinator:
    """
    Applies unthrottle events to a ledger.

    Attributes:
        ledger: Ledger whose APN state is cleared
        listener: Optional listener notified once per cleared APN
    """

    def __init__(self, ledger: RetryLedger, listener: Optional[UnthrottleListener] = None):
        self.ledger = ledger
        self.listener = listener

    def handle(self, event: ThrottleEvent, matcher: PolicyMatcher) -> list[str]:
        """
        Clear every APN the event unthrottles.

        Args:
            event: Event delivered by the host
            matcher: Matcher for the currently active tables

        Returns:
            APNs that were cleared, in ledger order
        """
        if event == ThrottleEvent.CARRIER_CONFIG_CHANGED_EVENT:
            cleared = self.ledger.clear_all()
        else:
            cleared = []
            for apn in self.ledger.apns:
                error = self.ledger.last_error(apn)
                policy = matcher.match(apn, error)
                if policy.can_unthrottle(event):
                    self.ledger.clear_apn(apn)
                    cleared.append(apn)

        for apn in cleared:
            logger.info("APN unthrottled", apn=apn, throttle_event=event.value)
            if self.listener is not None:
                self.listener.notify_apn_unthrottled(apn)
        return cleared
