"""
Stage 1: JSON Parse.

Parse raw configuration text into a list of APN policy groups. The text
must be plain JSON; comment lines are only allowed in the built-in default
file and are removed before it reaches this stage.
"""

import json

import structlog

from .exceptions import ConfigParseError

logger = structlog.get_logger(__name__)


class Stage1JSONParse:
    """
    Stage 1 loader: parse JSON text to a list.

    Raises ConfigParseError on malformed JSON or a non-array document.
    """

    def parse(self, content: str) -> list:
        """
        Parse configuration text.

        Args:
            content: Raw configuration text

        Returns:
            Parsed list of APN policy groups

        Raises:
            ConfigParseError: If content is not a JSON array
        """
        if not content or not content.strip():
            raise ConfigParseError(
                "Policy configuration is empty or whitespace-only",
                raw_content=content,
                parse_error="Empty content",
            )

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigParseError(
                f"Failed to parse policy configuration as JSON: {e.msg}",
                raw_content=content,
                parse_error=f"{e.msg} at line {e.lineno} col {e.colno}",
            ) from e

        if not isinstance(parsed, list):
            raise ConfigParseError(
                f"Policy configuration is not a JSON array (got {type(parsed).__name__})",
                raw_content=content,
                parse_error=f"Expected list, got {type(parsed).__name__}",
            )

        logger.debug(f"Stage 1: Parsed policy configuration with {len(parsed)} APN groups")
        return parsed
