"""
Stage 3: Policy Rules.

Convert schema-valid raw entries into typed ErrorPolicy objects, enforcing
the rules JSON Schema cannot express:
- ErrorType must be IKE_PROTOCOL_ERROR_TYPE, GENERIC_ERROR_TYPE or "*"
- ErrorDetails must be numbers / "lo-hi" ranges / "*" for protocol errors,
  known generic tokens / "*" for generic errors
- RetryArray entries must be "N", "N+rM", or a trailing "-1" that is not
  the only element
- UnthrottlingEvents must be known event tags
- NumAttemptsPerFqdn and HandoverAttemptCount must be positive
- HandoverAttemptCount only on IKE_PROTOCOL_ERROR_TYPE entries

Any violation rejects the whole configuration.
"""

import re

import structlog

from ..models.enums import GenericErrorDetail, PolicyErrorType, ThrottleEvent
from ..models.policy import WILDCARD, ErrorDetailPattern, ErrorPolicy, RetryDelay
from .exceptions import PolicyRuleViolation
from .raw_models import RawApnPolicyGroup, RawErrorTypeEntry

logger = structlog.get_logger(__name__)

_DIGITS = re.compile(r"^[0-9]+$")
_RANGE = re.compile(r"^([0-9]+)-([0-9]+)$")
_RANDOMIZED = re.compile(r"^([0-9]+)\+r([0-9]+)$")

REPEAT_SENTINEL = "-1"


class Stage3PolicyRules:
    """
    Stage 3 loader: build ErrorPolicy objects from raw entries.

    Raises PolicyRuleViolation on the first rule violation.
    """

    def build(self, groups: list[RawApnPolicyGroup]) -> dict[str, tuple[ErrorPolicy, ...]]:
        """
        Build the APN -> policies mapping.

        Groups that repeat an APN name are merged in config order.

        Args:
            groups: Raw APN groups (already schema-validated)

        Returns:
            Mapping of APN name to its policies in config order

        Raises:
            PolicyRuleViolation: If any rule is violated
        """
        policies: dict[str, list[ErrorPolicy]] = {}
        for i, group in enumerate(groups):
            for j, entry in enumerate(group.error_types):
                policy = self._build_policy(group.apn_name, entry, f"[{i}].ErrorTypes[{j}]")
                policies.setdefault(group.apn_name, []).append(policy)

        logger.debug(
            "Stage 3: Built error policies",
            apns=len(policies),
            policies=sum(len(p) for p in policies.values()),
        )
        return {apn: tuple(items) for apn, items in policies.items()}

    def _build_policy(self, apn: str, entry: RawErrorTypeEntry, path: str) -> ErrorPolicy:
        error_type = self._parse_error_type(entry.error_type, f"{path}.ErrorType")
        details = tuple(
            self._parse_error_detail(error_type, raw, f"{path}.ErrorDetails[{k}]")
            for k, raw in enumerate(entry.error_details)
        )
        delays, repeats_last = self._parse_retry_array(entry.retry_array, f"{path}.RetryArray")
        events = frozenset(
            self._parse_event(raw, f"{path}.UnthrottlingEvents[{k}]")
            for k, raw in enumerate(entry.unthrottling_events)
        )

        attempts_per_alternate = entry.num_attempts_per_fqdn
        if attempts_per_alternate is not None and attempts_per_alternate < 1:
            raise PolicyRuleViolation(
                "NumAttemptsPerFqdn must be a positive integer",
                rule_name="num_attempts_per_fqdn_positive",
                invalid_value=attempts_per_alternate,
                field_path=f"{path}.NumAttemptsPerFqdn",
            )

        handover_threshold = entry.handover_attempt_count
        if handover_threshold is not None:
            if error_type != PolicyErrorType.IKE_PROTOCOL_ERROR_TYPE:
                raise PolicyRuleViolation(
                    "HandoverAttemptCount is only allowed when ErrorType is explicitly "
                    "IKE_PROTOCOL_ERROR_TYPE",
                    rule_name="handover_attempt_count_error_type",
                    invalid_value=error_type.value,
                    field_path=f"{path}.HandoverAttemptCount",
                )
            if handover_threshold < 1:
                raise PolicyRuleViolation(
                    "HandoverAttemptCount must be a positive integer",
                    rule_name="handover_attempt_count_positive",
                    invalid_value=handover_threshold,
                    field_path=f"{path}.HandoverAttemptCount",
                )

        return ErrorPolicy(
            apn_match=apn,
            error_type=error_type,
            error_details=details,
            retry_delays=delays,
            repeats_last=repeats_last,
            unthrottle_events=events,
            attempts_per_alternate=attempts_per_alternate,
            handover_attempt_threshold=handover_threshold,
        )

    def _parse_error_type(self, raw: str, path: str) -> PolicyErrorType:
        try:
            return PolicyErrorType(raw)
        except ValueError:
            raise PolicyRuleViolation(
                f"Unknown ErrorType '{raw}'",
                rule_name="error_type_known",
                invalid_value=raw,
                field_path=path,
            ) from None

    def _parse_error_detail(self, error_type: PolicyErrorType, raw: str, path: str) -> ErrorDetailPattern:
        if raw == WILDCARD:
            return ErrorDetailPattern(raw=raw)

        if error_type == PolicyErrorType.IKE_PROTOCOL_ERROR_TYPE:
            if _DIGITS.match(raw):
                code = int(raw)
                return ErrorDetailPattern(raw=raw, low=code, high=code)
            range_match = _RANGE.match(raw)
            if range_match:
                low, high = int(range_match.group(1)), int(range_match.group(2))
                if low <= high:
                    return ErrorDetailPattern(raw=raw, low=low, high=high)
            raise PolicyRuleViolation(
                f"Invalid ErrorDetail '{raw}' for IKE_PROTOCOL_ERROR_TYPE",
                rule_name="protocol_error_detail_format",
                invalid_value=raw,
                field_path=path,
            )

        if error_type == PolicyErrorType.GENERIC_ERROR_TYPE:
            try:
                return ErrorDetailPattern(raw=raw, token=GenericErrorDetail(raw))
            except ValueError:
                raise PolicyRuleViolation(
                    f"Invalid ErrorDetail '{raw}' for GENERIC_ERROR_TYPE",
                    rule_name="generic_error_detail_known",
                    invalid_value=raw,
                    field_path=path,
                ) from None

        # "*" error type matches everything regardless of details
        return ErrorDetailPattern(raw=raw)

    def _parse_retry_array(self, raw_values: list[str], path: str) -> tuple[tuple[RetryDelay, ...], bool]:
        delays: list[RetryDelay] = []
        repeats_last = False
        last = len(raw_values) - 1

        for k, raw in enumerate(raw_values):
            if raw == REPEAT_SENTINEL:
                if k != last or k == 0:
                    raise PolicyRuleViolation(
                        "Misplaced -1 in RetryArray (must be last and follow at least one delay)",
                        rule_name="repeat_sentinel_position",
                        invalid_value=raw_values,
                        field_path=f"{path}[{k}]",
                    )
                repeats_last = True
                continue

            if _DIGITS.match(raw):
                delays.append(RetryDelay(base=int(raw)))
                continue

            randomized = _RANDOMIZED.match(raw)
            if randomized:
                delays.append(RetryDelay(base=int(randomized.group(1)), jitter=int(randomized.group(2))))
                continue

            raise PolicyRuleViolation(
                f"Retry time '{raw}' is not in an acceptable format",
                rule_name="retry_time_format",
                invalid_value=raw,
                field_path=f"{path}[{k}]",
            )

        return tuple(delays), repeats_last

    def _parse_event(self, raw: str, path: str) -> ThrottleEvent:
        try:
            return ThrottleEvent(raw)
        except ValueError:
            raise PolicyRuleViolation(
                f"Unexpected UnthrottlingEvent '{raw}'",
                rule_name="unthrottling_event_known",
                invalid_value=raw,
                field_path=path,
            ) from None
