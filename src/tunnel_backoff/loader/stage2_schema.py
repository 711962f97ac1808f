"""
Stage 2: JSON Schema validation.

Checks the parsed array against the policy grammar in
``error_policy_config.schema.json`` (Draft 7, shipped as package data).
Only the structure is checked here: token formats, ranges and cross-field
rules belong to stage 3.
"""

import json
from importlib import resources
from pathlib import Path
from typing import Iterable, Optional

import structlog
from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError, relevance

from .exceptions import ConfigSchemaError

logger = structlog.get_logger(__name__)

PACKAGED_SCHEMA = "error_policy_config.schema.json"
MAX_REPORTED_ERRORS = 10


def _location(path: Iterable) -> str:
    """Render a jsonschema error path the way stage 3 renders field paths."""
    rendered = ""
    for part in path:
        rendered += f"[{part}]" if isinstance(part, int) else f".{part}"
    return rendered or "<root>"


class Stage2SchemaValidation:
    """Validates parsed configuration against the policy JSON Schema."""

    def __init__(self, schema_path: Optional[str] = None):
        """
        Args:
            schema_path: Schema file overriding the packaged one
        """
        self.schema_path = schema_path
        self._validator: Draft7Validator | None = None

    @property
    def schema_name(self) -> str:
        return self.schema_path or PACKAGED_SCHEMA

    def _read_schema_text(self) -> str:
        if self.schema_path:
            return Path(self.schema_path).read_text(encoding="utf-8")
        return resources.files("tunnel_backoff.data").joinpath(PACKAGED_SCHEMA).read_text(encoding="utf-8")

    @property
    def validator(self) -> Draft7Validator:
        """Validator for the schema, built on first use."""
        if self._validator is None:
            try:
                schema = json.loads(self._read_schema_text())
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigSchemaError(
                    f"Failed to load JSON Schema: {e}", schema_path=self.schema_name
                ) from e
            self._validator = Draft7Validator(schema)
            logger.info("Policy config schema loaded", schema_path=self.schema_name)
        return self._validator

    def validate(self, data: list) -> None:
        """
        Raises:
            ConfigSchemaError: If the data does not conform; details carry up
                to ten located messages
        """
        violations: list[ValidationError] = sorted(self.validator.iter_errors(data), key=relevance)
        if not violations:
            logger.debug("Policy config matches schema", groups=len(data))
            return

        raise ConfigSchemaError(
            f"Policy configuration failed JSON Schema validation with {len(violations)} error(s)",
            validation_errors=[
                f"{_location(v.absolute_path)}: {v.message}"
                for v in violations[:MAX_REPORTED_ERRORS]
            ],
            schema_path=self.schema_name,
        )
