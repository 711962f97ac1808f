"""
Data models for the tunnel backoff engine.

Includes:
- Enums (PolicyErrorType, ErrorKind, GenericErrorDetail, ThrottleEvent, FailureCause)
- ErrorDescriptor (frozen dataclass identifying a reported cause)
- Policy models (RetryDelay, ErrorDetailPattern, ErrorPolicy, PolicyTable)
"""

from tunnel_backoff.models.enums import (
    ErrorKind,
    FailureCause,
    GenericErrorDetail,
    PolicyErrorType,
    ThrottleEvent,
)
from tunnel_backoff.models.error_descriptor import ErrorDescriptor
from tunnel_backoff.models.policy import (
    WILDCARD,
    ErrorDetailPattern,
    ErrorPolicy,
    PolicySource,
    PolicyTable,
    RetryDelay,
)

__all__ = [
    # Enums
    "ErrorKind",
    "FailureCause",
    "GenericErrorDetail",
    "PolicyErrorType",
    "ThrottleEvent",
    # Errors
    "ErrorDescriptor",
    # Policies
    "WILDCARD",
    "ErrorDetailPattern",
    "ErrorPolicy",
    "PolicySource",
    "PolicyTable",
    "RetryDelay",
]
