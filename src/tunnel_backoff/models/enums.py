"""
Enumerations for the tunnel backoff engine.

All enums are closed taxonomies. The external string vocabulary used by
carrier configuration is parsed into these values at the loader boundary;
nothing downstream of the loader handles raw strings.
"""

from enum import Enum
from typing import Optional


class PolicyErrorType(str, Enum):
    """
    Error type a policy applies to.

    ANY ("*") is the fallback type: it matches every error and is ranked
    below any policy of a specific type.
    """

    IKE_PROTOCOL_ERROR_TYPE = "IKE_PROTOCOL_ERROR_TYPE"
    GENERIC_ERROR_TYPE = "GENERIC_ERROR_TYPE"
    ANY = "*"


class ErrorKind(str, Enum):
    """
    Kind of error reported for a tunnel bring-up attempt.

    IKE_PROTOCOL_EXCEPTION carries a numeric notify code on the
    ErrorDescriptor; every other kind is identified by its name alone.
    """

    NO_ERROR = "NO_ERROR"
    IKE_PROTOCOL_EXCEPTION = "IKE_PROTOCOL_EXCEPTION"
    IKE_INTERNAL_IO_EXCEPTION = "IKE_INTERNAL_IO_EXCEPTION"
    EPDG_SELECTOR_SERVER_SELECTION_FAILED = "EPDG_SELECTOR_SERVER_SELECTION_FAILED"
    TUNNEL_TRANSFORM_FAILED = "TUNNEL_TRANSFORM_FAILED"
    IKE_NETWORK_LOST_EXCEPTION = "IKE_NETWORK_LOST_EXCEPTION"
    EPDG_ADDRESS_ONLY_IPV4_ALLOWED = "EPDG_ADDRESS_ONLY_IPV4_ALLOWED"
    EPDG_ADDRESS_ONLY_IPV6_ALLOWED = "EPDG_ADDRESS_ONLY_IPV6_ALLOWED"
    IKE_INIT_TIMEOUT = "IKE_INIT_TIMEOUT"
    IKE_MOBILITY_TIMEOUT = "IKE_MOBILITY_TIMEOUT"
    IKE_DPD_TIMEOUT = "IKE_DPD_TIMEOUT"
    SIM_NOT_READY_EXCEPTION = "SIM_NOT_READY_EXCEPTION"
    IKE_SESSION_CLOSED_BEFORE_CHILD_SESSION_OPENED = "IKE_SESSION_CLOSED_BEFORE_CHILD_SESSION_OPENED"
    TUNNEL_NOT_FOUND = "TUNNEL_NOT_FOUND"
    UNKNOWN = "UNKNOWN"


class GenericErrorDetail(str, Enum):
    """
    Literal tokens accepted in ErrorDetails of a GENERIC_ERROR_TYPE policy.

    TIMEOUT_EXCEPTION is an umbrella token covering all IKE timeout kinds.
    """

    IO_EXCEPTION = "IO_EXCEPTION"
    TIMEOUT_EXCEPTION = "TIMEOUT_EXCEPTION"
    SERVER_SELECTION_FAILED = "SERVER_SELECTION_FAILED"
    TUNNEL_TRANSFORM_FAILED = "TUNNEL_TRANSFORM_FAILED"
    IKE_NETWORK_LOST_EXCEPTION = "IKE_NETWORK_LOST_EXCEPTION"
    EPDG_ADDRESS_ONLY_IPV4_ALLOWED = "EPDG_ADDRESS_ONLY_IPV4_ALLOWED"
    EPDG_ADDRESS_ONLY_IPV6_ALLOWED = "EPDG_ADDRESS_ONLY_IPV6_ALLOWED"
    IKE_INIT_TIMEOUT = "IKE_INIT_TIMEOUT"
    IKE_MOBILITY_TIMEOUT = "IKE_MOBILITY_TIMEOUT"
    IKE_DPD_TIMEOUT = "IKE_DPD_TIMEOUT"

    @classmethod
    def for_kind(cls, kind: ErrorKind) -> Optional["GenericErrorDetail"]:
        """Generic token for an error kind, or None if the kind has none."""
        return _GENERIC_DETAIL_BY_KIND.get(kind)


_GENERIC_DETAIL_BY_KIND = {
    ErrorKind.IKE_INTERNAL_IO_EXCEPTION: GenericErrorDetail.IO_EXCEPTION,
    ErrorKind.EPDG_SELECTOR_SERVER_SELECTION_FAILED: GenericErrorDetail.SERVER_SELECTION_FAILED,
    ErrorKind.TUNNEL_TRANSFORM_FAILED: GenericErrorDetail.TUNNEL_TRANSFORM_FAILED,
    ErrorKind.IKE_NETWORK_LOST_EXCEPTION: GenericErrorDetail.IKE_NETWORK_LOST_EXCEPTION,
    ErrorKind.EPDG_ADDRESS_ONLY_IPV4_ALLOWED: GenericErrorDetail.EPDG_ADDRESS_ONLY_IPV4_ALLOWED,
    ErrorKind.EPDG_ADDRESS_ONLY_IPV6_ALLOWED: GenericErrorDetail.EPDG_ADDRESS_ONLY_IPV6_ALLOWED,
    ErrorKind.IKE_INIT_TIMEOUT: GenericErrorDetail.IKE_INIT_TIMEOUT,
    ErrorKind.IKE_MOBILITY_TIMEOUT: GenericErrorDetail.IKE_MOBILITY_TIMEOUT,
    ErrorKind.IKE_DPD_TIMEOUT: GenericErrorDetail.IKE_DPD_TIMEOUT,
}

TIMEOUT_KINDS = frozenset(
    {ErrorKind.IKE_INIT_TIMEOUT, ErrorKind.IKE_MOBILITY_TIMEOUT, ErrorKind.IKE_DPD_TIMEOUT}
)


class ThrottleEvent(str, Enum):
    """
    Events that may unthrottle an APN ahead of its retry time.

    CARRIER_CONFIG_CHANGED_EVENT is always subscribed; the others only when
    some policy lists them in UnthrottlingEvents.
    """

    CARRIER_CONFIG_CHANGED_EVENT = "CARRIER_CONFIG_CHANGED_EVENT"
    WIFI_DISABLE_EVENT = "WIFI_DISABLE_EVENT"
    APM_DISABLE_EVENT = "APM_DISABLE_EVENT"
    APM_ENABLE_EVENT = "APM_ENABLE_EVENT"
    WIFI_AP_CHANGED_EVENT = "WIFI_AP_CHANGED_EVENT"
    WIFI_CALLING_ENABLE_EVENT = "WIFI_CALLING_ENABLE_EVENT"
    WIFI_CALLING_DISABLE_EVENT = "WIFI_CALLING_DISABLE_EVENT"
    CROSS_SIM_CALLING_ENABLE_EVENT = "CROSS_SIM_CALLING_ENABLE_EVENT"
    CROSS_SIM_CALLING_DISABLE_EVENT = "CROSS_SIM_CALLING_DISABLE_EVENT"
    CARRIER_CONFIG_UNKNOWN_CARRIER_EVENT = "CARRIER_CONFIG_UNKNOWN_CARRIER_EVENT"
    CELLINFO_CHANGED_EVENT = "CELLINFO_CHANGED_EVENT"
    PREFERRED_NETWORK_TYPE_CHANGED_EVENT = "PREFERRED_NETWORK_TYPE_CHANGED_EVENT"


class FailureCause(str, Enum):
    """
    Coarse failure cause handed upstream for reporting.

    Translating these into a host platform's own taxonomy is left to the
    caller.
    """

    NONE = "NONE"
    ERROR_UNSPECIFIED = "ERROR_UNSPECIFIED"
    DNS_RESOLUTION_NAME_FAILURE = "DNS_RESOLUTION_NAME_FAILURE"
    ONLY_IPV4_ALLOWED = "ONLY_IPV4_ALLOWED"
    ONLY_IPV6_ALLOWED = "ONLY_IPV6_ALLOWED"
    IKEV2_MSG_TIMEOUT = "IKEV2_MSG_TIMEOUT"
    SIM_CARD_CHANGED = "SIM_CARD_CHANGED"
    IKE_SESSION_CLOSED_BEFORE_CHILD_SESSION_OPENED = "IKE_SESSION_CLOSED_BEFORE_CHILD_SESSION_OPENED"
    TUNNEL_NOT_FOUND = "TUNNEL_NOT_FOUND"
    IKE_INIT_TIMEOUT = "IKE_INIT_TIMEOUT"
    IKE_MOBILITY_TIMEOUT = "IKE_MOBILITY_TIMEOUT"
    IKE_DPD_TIMEOUT = "IKE_DPD_TIMEOUT"
    TUNNEL_TRANSFORM_FAILED = "TUNNEL_TRANSFORM_FAILED"
    IKE_NETWORK_LOST_EXCEPTION = "IKE_NETWORK_LOST_EXCEPTION"
    IKEV2_AUTH_FAILURE = "IKEV2_AUTH_FAILURE"
    EPDG_INTERNAL_ADDRESS_FAILURE = "EPDG_INTERNAL_ADDRESS_FAILURE"
    PDN_CONNECTION_REJECTION = "PDN_CONNECTION_REJECTION"
    MAX_CONNECTION_REACHED = "MAX_CONNECTION_REACHED"
    SEMANTIC_ERROR_IN_THE_TFT_OPERATION = "SEMANTIC_ERROR_IN_THE_TFT_OPERATION"
    SYNTACTICAL_ERROR_IN_THE_TFT_OPERATION = "SYNTACTICAL_ERROR_IN_THE_TFT_OPERATION"
    SEMANTIC_ERRORS_IN_PACKET_FILTERS = "SEMANTIC_ERRORS_IN_PACKET_FILTERS"
    SYNTACTICAL_ERRORS_IN_PACKET_FILTERS = "SYNTACTICAL_ERRORS_IN_PACKET_FILTERS"
    NON_3GPP_ACCESS_TO_EPC_NOT_ALLOWED = "NON_3GPP_ACCESS_TO_EPC_NOT_ALLOWED"
    USER_UNKNOWN = "USER_UNKNOWN"
    NO_APN_SUBSCRIPTION = "NO_APN_SUBSCRIPTION"
    AUTHORIZATION_REJECTED = "AUTHORIZATION_REJECTED"
    ILLEGAL_ME = "ILLEGAL_ME"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    RAT_TYPE_NOT_ALLOWED = "RAT_TYPE_NOT_ALLOWED"
    IMEI_NOT_ACCEPTED = "IMEI_NOT_ACCEPTED"
    PLMN_NOT_ALLOWED = "PLMN_NOT_ALLOWED"
    UNAUTHENTICATED_EMERGENCY_NOT_SUPPORTED = "UNAUTHENTICATED_EMERGENCY_NOT_SUPPORTED"
    CONGESTION = "CONGESTION"
    IKE_PRIVATE_PROTOCOL_ERROR = "IKE_PRIVATE_PROTOCOL_ERROR"
