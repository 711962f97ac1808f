"""
Policy Loader: multi-stage configuration loading orchestrator.

Coordinates the loader stages:
- Stage 1: JSON Parse
- Stage 2: JSON Schema
- (Pydantic parsing of the raw grammar between Stage 2 and 3)
- Stage 3: Policy Rules

Every stage is a hard failure: one violation anywhere rejects the whole
configuration. There is no partial acceptance.
"""

from importlib import resources
from pathlib import Path
from typing import Optional

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings
from ..models.policy import PolicySource, PolicyTable
from .exceptions import ConfigSchemaError, DefaultPolicyError, PolicyConfigError
from .raw_models import RawApnPolicyGroup
from .stage1_json_parse import Stage1JSONParse
from .stage2_schema import Stage2SchemaValidation
from .stage3_policy_rules import Stage3PolicyRules

logger = structlog.get_logger(__name__)

PACKAGED_DEFAULT_POLICIES = "default_error_policies.json"

_RAW_GROUPS = TypeAdapter(list[RawApnPolicyGroup])


def strip_comment_lines(content: str) -> str:
    """Drop lines whose first non-blank character is '#' (default file comments)."""
    return "\n".join(line for line in content.splitlines() if not line.lstrip().startswith("#"))


class PolicyLoader:
    """
    Turns raw configuration text into a PolicyTable.

    Text in, table out: nothing downstream sees the raw configuration.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize policy loader.

        Args:
            settings: Application settings (schema and default policy paths)
        """
        self.settings = settings or Settings()
        self.stage1 = Stage1JSONParse()
        self.stage2 = Stage2SchemaValidation(self.settings.POLICY_SCHEMA_PATH)
        self.stage3 = Stage3PolicyRules()

    def load(self, content: str, source: PolicySource = PolicySource.CARRIER) -> PolicyTable:
        """
        Run the full loader pipeline.

        Args:
            content: Raw configuration text
            source: Whether this is carrier or built-in default config

        Returns:
            Immutable PolicyTable

        Raises:
            PolicyConfigError: If any stage rejects the configuration
        """
        parsed = self.stage1.parse(content)
        self.stage2.validate(parsed)

        try:
            groups = _RAW_GROUPS.validate_python(parsed)
        except PydanticValidationError as e:
            error_messages = [
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise ConfigSchemaError(
                f"Policy configuration model validation failed: {len(e.errors())} error(s)",
                validation_errors=error_messages[:10],
            ) from e

        table = PolicyTable(self.stage3.build(groups), source)
        logger.info(
            "Policy configuration loaded",
            source=source.value,
            apns=list(table.apns),
            policies=len(table),
        )
        return table

    def read_default_config(self) -> str:
        """Text of the built-in default policies (packaged or overridden), comments removed."""
        if self.settings.DEFAULT_POLICY_PATH:
            text = Path(self.settings.DEFAULT_POLICY_PATH).read_text(encoding="utf-8")
        else:
            text = resources.files("tunnel_backoff.data").joinpath(PACKAGED_DEFAULT_POLICIES).read_text(encoding="utf-8")
        return strip_comment_lines(text)

    def load_default(self) -> PolicyTable:
        """
        Load the built-in default table.

        Raises:
            DefaultPolicyError: If the default cannot be read, is invalid,
                or lacks the universal "*"/"*" fallback
        """
        try:
            content = self.read_default_config()
        except OSError as e:
            raise DefaultPolicyError(f"Unable to read default error policies: {e}") from e

        try:
            table = self.load(content, source=PolicySource.DEFAULT)
        except PolicyConfigError as e:
            raise DefaultPolicyError("Default error policies are invalid", cause=e) from e

        if not table.has_universal_fallback:
            raise DefaultPolicyError(
                'Default error policies must define ErrorType "*" for ApnName "*"'
            )
        return table
