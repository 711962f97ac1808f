"""
Exceptions raised while loading error policy configuration.

A carrier configuration that raises any PolicyConfigError is rejected as a
whole and the engine falls back to the built-in default table. The same
errors raised while loading the built-in default are wrapped in
DefaultPolicyError, which is fatal.
"""

from typing import Any

SNIPPET_LIMIT = 500


def _present(**fields: Any) -> dict[str, Any]:
    """Keep only the fields that carry a value."""
    return {key: value for key, value in fields.items() if value not in (None, "", [])}


class PolicyConfigError(Exception):
    """
    A configuration was rejected by one of the loader stages.

    Attributes:
        stage: Loader stage that raised it (0 when not tied to one)
        message: Human-readable description
        details: Structured data for log events
    """

    stage = 0

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        rendered = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} ({rendered})"


class ConfigParseError(PolicyConfigError):
    """Stage 1: the text is not a JSON array.

    ``content_snippet`` keeps the first 500 characters of the offending text.
    """

    stage = 1

    def __init__(self, message: str, raw_content: str | None = None, parse_error: str | None = None):
        snippet = raw_content[:SNIPPET_LIMIT] if raw_content else None
        super().__init__(message, _present(content_snippet=snippet, parse_error=parse_error))


class ConfigSchemaError(PolicyConfigError):
    """Stage 2: the array does not follow the policy grammar (missing keys, wrong types)."""

    stage = 2

    def __init__(
        self,
        message: str,
        validation_errors: list[str] | None = None,
        schema_path: str | None = None,
    ):
        super().__init__(
            message,
            _present(validation_errors=validation_errors, schema_path=schema_path),
        )


class PolicyRuleViolation(PolicyConfigError):
    """
    Stage 3: a well-formed entry that still is not a usable policy.

    Examples:
    - "-1" not at the end of RetryArray
    - malformed "lo-hi" range in ErrorDetails
    - unknown UnthrottlingEvents tag
    - HandoverAttemptCount on a non IKE_PROTOCOL_ERROR_TYPE entry
    """

    stage = 3

    def __init__(
        self,
        message: str,
        rule_name: str | None = None,
        invalid_value: Any | None = None,
        field_path: str | None = None,
    ):
        shown = None if invalid_value is None else str(invalid_value)
        super().__init__(
            message,
            _present(rule_name=rule_name, invalid_value=shown, field_path=field_path),
        )


class DefaultPolicyError(Exception):
    """
    The built-in default policy table failed to load.

    The default table is valid by construction, so this means a packaging
    or programming error. It is never recovered from.
    """

    def __init__(self, message: str, cause: PolicyConfigError | None = None):
        self.cause = cause
        super().__init__(message if cause is None else f"{message}: {cause}")
