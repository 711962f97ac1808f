"""
Multi-stage policy configuration loader.

- pipeline.py: Orchestrator for all loader stages (PolicyLoader)
- stage1_json_parse.py: JSON parsing
- stage2_schema.py: JSON Schema validation of the config grammar
- raw_models.py: Pydantic models of the raw grammar
- stage3_policy_rules.py: Token parsing and cross-field rules
"""

from .exceptions import (
    ConfigParseError,
    ConfigSchemaError,
    DefaultPolicyError,
    PolicyConfigError,
    PolicyRuleViolation,
)
from .pipeline import PolicyLoader

__all__ = [
    # Main loader
    "PolicyLoader",
    # Exceptions
    "PolicyConfigError",
    "ConfigParseError",
    "ConfigSchemaError",
    "PolicyRuleViolation",
    "DefaultPolicyError",
]
