"""
Retry engine exceptions.

These signal programming-invariant violations, not runtime conditions:
callers are not expected to catch them.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tunnel_backoff.models.error_descriptor import ErrorDescriptor


class NoMatchingPolicyError(AssertionError):
    """
    Raised when no policy matches an error, not even the default fallback.

    The built-in default table is checked for a universal "*"/"*" policy
    when it is loaded, so this is unreachable unless that check is bypassed.

    Attributes:
        apn: APN the lookup was made for
        error: Error that failed to match
    """

    def __init__(self, apn: str, error: "ErrorDescriptor") -> None:
        self.apn = apn
        self.error = error
        super().__init__(f"No error policy matched {error.cause_identity} for APN '{apn}'")
