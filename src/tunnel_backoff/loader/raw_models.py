"""
Pydantic models mirroring the external policy configuration grammar.

These keep the carrier's key names (via aliases) and string vocabulary.
Stage 3 converts them into the typed ErrorPolicy models; nothing outside
the loader package uses them.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class RawErrorTypeEntry(BaseModel):
    """One element of an APN group's ErrorTypes array."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    error_type: str = Field(..., alias="ErrorType")
    error_details: list[str] = Field(..., alias="ErrorDetails", min_length=1)
    retry_array: list[str] = Field(..., alias="RetryArray", min_length=1)
    unthrottling_events: list[str] = Field(..., alias="UnthrottlingEvents")
    num_attempts_per_fqdn: Optional[int] = Field(default=None, alias="NumAttemptsPerFqdn")
    handover_attempt_count: Optional[int] = Field(default=None, alias="HandoverAttemptCount")

    @field_validator("error_type", "num_attempts_per_fqdn", "handover_attempt_count", mode="before")
    @classmethod
    def strip_scalar(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("error_details", "retry_array", "unthrottling_events", mode="before")
    @classmethod
    def strip_items(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_strip(item) for item in value]
        return value


class RawApnPolicyGroup(BaseModel):
    """One element of the top-level configuration array."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    apn_name: str = Field(..., alias="ApnName", min_length=1)
    error_types: list[RawErrorTypeEntry] = Field(..., alias="ErrorTypes")

    @field_validator("apn_name", mode="before")
    @classmethod
    def strip_apn(cls, value: Any) -> Any:
        return _strip(value)
