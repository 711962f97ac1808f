"""
Error descriptor reported for a tunnel bring-up attempt.

An ErrorDescriptor is the engine's only view of a failure. Its
``cause_identity`` string is the ledger's partition key alongside the APN:
two descriptors are the same cause iff their identities are equal.
"""

from dataclasses import dataclass
from typing import Optional

from tunnel_backoff.models.enums import ErrorKind, GenericErrorDetail


@dataclass(frozen=True)
class ErrorDescriptor:
    """
    Immutable description of a reported error.

    Attributes:
        kind: Error kind
        protocol_code: IKE notify code, required for IKE_PROTOCOL_EXCEPTION
            and forbidden for every other kind
    """

    kind: ErrorKind
    protocol_code: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate descriptor invariants."""
        if self.kind == ErrorKind.IKE_PROTOCOL_EXCEPTION:
            if self.protocol_code is None:
                raise ValueError("IKE_PROTOCOL_EXCEPTION requires a protocol_code")
            if self.protocol_code < 0:
                raise ValueError("protocol_code must be >= 0")
        elif self.protocol_code is not None:
            raise ValueError(f"protocol_code is only valid for IKE_PROTOCOL_EXCEPTION, got {self.kind.value}")

    @classmethod
    def no_error(cls) -> "ErrorDescriptor":
        return cls(ErrorKind.NO_ERROR)

    @classmethod
    def protocol(cls, code: int) -> "ErrorDescriptor":
        """Descriptor for an IKE protocol (notify) error."""
        return cls(ErrorKind.IKE_PROTOCOL_EXCEPTION, protocol_code=code)

    @classmethod
    def of(cls, kind: ErrorKind | str) -> "ErrorDescriptor":
        """Descriptor for a non-protocol error kind (accepts the kind name)."""
        return cls(ErrorKind(kind))

    @property
    def is_no_error(self) -> bool:
        return self.kind == ErrorKind.NO_ERROR

    @property
    def is_protocol_error(self) -> bool:
        return self.kind == ErrorKind.IKE_PROTOCOL_EXCEPTION

    @property
    def generic_detail(self) -> Optional[GenericErrorDetail]:
        return GenericErrorDetail.for_kind(self.kind)

    @property
    def cause_identity(self) -> str:
        if self.is_protocol_error:
            return f"{self.kind.value}:{self.protocol_code}"
        return self.kind.value

    def __str__(self) -> str:
        return self.cause_identity
