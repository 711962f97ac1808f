"""
Coarse failure cause derivation.

Maps an ErrorDescriptor to the FailureCause reported upstream. Protocol
codes 24 and 36 are the standard IKEv2 AUTHENTICATION_FAILED and
INTERNAL_ADDRESS_FAILURE notifies; the 8192-15500 codes are the 3GPP
private notify types of TS 24.302 8.1.2.2 and TS 24.502 9.2.4.1.
"""

from tunnel_backoff.models.enums import ErrorKind, FailureCause
from tunnel_backoff.models.error_descriptor import ErrorDescriptor

PROTOCOL_CAUSES: dict[int, FailureCause] = {
    24: FailureCause.IKEV2_AUTH_FAILURE,
    36: FailureCause.EPDG_INTERNAL_ADDRESS_FAILURE,
    8192: FailureCause.PDN_CONNECTION_REJECTION,
    8193: FailureCause.MAX_CONNECTION_REACHED,
    8241: FailureCause.SEMANTIC_ERROR_IN_THE_TFT_OPERATION,
    8242: FailureCause.SYNTACTICAL_ERROR_IN_THE_TFT_OPERATION,
    8244: FailureCause.SEMANTIC_ERRORS_IN_PACKET_FILTERS,
    8245: FailureCause.SYNTACTICAL_ERRORS_IN_PACKET_FILTERS,
    9000: FailureCause.NON_3GPP_ACCESS_TO_EPC_NOT_ALLOWED,
    9001: FailureCause.USER_UNKNOWN,
    9002: FailureCause.NO_APN_SUBSCRIPTION,
    9003: FailureCause.AUTHORIZATION_REJECTED,
    9006: FailureCause.ILLEGAL_ME,
    10500: FailureCause.NETWORK_FAILURE,
    11001: FailureCause.RAT_TYPE_NOT_ALLOWED,
    11005: FailureCause.IMEI_NOT_ACCEPTED,
    11011: FailureCause.PLMN_NOT_ALLOWED,
    11055: FailureCause.UNAUTHENTICATED_EMERGENCY_NOT_SUPPORTED,
    15500: FailureCause.CONGESTION,
}
"""Named causes for IKE protocol notify codes."""

KIND_CAUSES: dict[ErrorKind, FailureCause] = {
    ErrorKind.NO_ERROR: FailureCause.NONE,
    ErrorKind.EPDG_SELECTOR_SERVER_SELECTION_FAILED: FailureCause.DNS_RESOLUTION_NAME_FAILURE,
    ErrorKind.EPDG_ADDRESS_ONLY_IPV4_ALLOWED: FailureCause.ONLY_IPV4_ALLOWED,
    ErrorKind.EPDG_ADDRESS_ONLY_IPV6_ALLOWED: FailureCause.ONLY_IPV6_ALLOWED,
    ErrorKind.IKE_INTERNAL_IO_EXCEPTION: FailureCause.IKEV2_MSG_TIMEOUT,
    ErrorKind.SIM_NOT_READY_EXCEPTION: FailureCause.SIM_CARD_CHANGED,
    ErrorKind.IKE_SESSION_CLOSED_BEFORE_CHILD_SESSION_OPENED: (
        FailureCause.IKE_SESSION_CLOSED_BEFORE_CHILD_SESSION_OPENED
    ),
    ErrorKind.TUNNEL_NOT_FOUND: FailureCause.TUNNEL_NOT_FOUND,
    ErrorKind.IKE_INIT_TIMEOUT: FailureCause.IKE_INIT_TIMEOUT,
    ErrorKind.IKE_MOBILITY_TIMEOUT: FailureCause.IKE_MOBILITY_TIMEOUT,
    ErrorKind.IKE_DPD_TIMEOUT: FailureCause.IKE_DPD_TIMEOUT,
    ErrorKind.TUNNEL_TRANSFORM_FAILED: FailureCause.TUNNEL_TRANSFORM_FAILED,
    ErrorKind.IKE_NETWORK_LOST_EXCEPTION: FailureCause.IKE_NETWORK_LOST_EXCEPTION,
}
"""Named causes for non-protocol error kinds."""


def derive_failure_cause(error: ErrorDescriptor) -> FailureCause:
    """
    Coarse failure cause for an error.

    Unlisted protocol codes map to IKE_PRIVATE_PROTOCOL_ERROR; unlisted
    kinds map to ERROR_UNSPECIFIED.
    """
    if error.is_protocol_error:
        return PROTOCOL_CAUSES.get(error.protocol_code, FailureCause.IKE_PRIVATE_PROTOCOL_ERROR)
    return KIND_CAUSES.get(error.kind, FailureCause.ERROR_UNSPECIFIED)
