"""
Policy matcher.

Selects the single most specific policy for an (APN, error) pair.

Lookup order, first match wins:
    1. Carrier table, group for the literal APN
    2. Carrier table, "*" APN group
    3. Default table, group for the literal APN
    4. Default table, "*" APN group (always contains a "*"/"*" fallback)

Within one group, a literal or range hit on the error's own type beats a
"*" detail on that type, which beats a "*" error type. Ties go to the
policy declared first.
"""

from typing import Optional

import structlog

from tunnel_backoff.models.error_descriptor import ErrorDescriptor
from tunnel_backoff.models.policy import WILDCARD, ErrorPolicy, PolicyTable
from tunnel_backoff.retry.exceptions import NoMatchingPolicyError

logger = structlog.get_logger(__name__)


def preferred_policy(policies: tuple[ErrorPolicy, ...], error: ErrorDescriptor) -> Optional[ErrorPolicy]:
    """Most specific policy of one APN group that matches ``error``."""
    selected: Optional[ErrorPolicy] = None
    selected_rank: Optional[int] = None
    for policy in policies:
        rank = policy.match_rank(error)
        if rank is None:
            continue
        if selected_rank is None or rank < selected_rank:
            selected, selected_rank = policy, rank
    return selected


class PolicyMatcher:
    """
    Matcher over an optional carrier table and the built-in default table.

    Attributes:
        default_table: Built-in default PolicyTable (always present)
        carrier_table: Carrier PolicyTable, or None when absent/rejected
    """

    def __init__(self, default_table: PolicyTable, carrier_table: Optional[PolicyTable] = None):
        self.default_table = default_table
        self.carrier_table = carrier_table

    @property
    def using_default_only(self) -> bool:
        return self.carrier_table is None

    def _tables(self) -> tuple[PolicyTable, ...]:
        if self.carrier_table is None:
            return (self.default_table,)
        return (self.carrier_table, self.default_table)

    def find(self, apn: str, error: ErrorDescriptor) -> Optional[ErrorPolicy]:
        """Like match() but returns None instead of raising."""
        for table in self._tables():
            for group_key in (apn, WILDCARD):
                if group_key not in table:
                    continue
                policy = preferred_policy(table.group(group_key), error)
                if policy is not None:
                    return policy
        return None

    def match(self, apn: str, error: ErrorDescriptor) -> ErrorPolicy:
        """
        Select the applicable policy.

        Args:
            apn: APN name
            error: Reported error (must not be NO_ERROR)

        Returns:
            The most specific matching ErrorPolicy

        Raises:
            NoMatchingPolicyError: If even the default fallback is missing
        """
        policy = self.find(apn, error)
        if policy is None:
            logger.error(
                "No matched error policy",
                apn=apn,
                cause=error.cause_identity,
                default_apns=list(self.default_table.apns),
            )
            raise NoMatchingPolicyError(apn, error)
        return policy

    @property
    def unthrottle_events(self):
        events = set(self.default_table.unthrottle_events)
        if self.carrier_table is not None:
            events.update(self.carrier_table.unthrottle_events)
        return frozenset(events)
