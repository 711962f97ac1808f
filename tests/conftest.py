"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
"""

import json
import random
from typing import Any, Callable, Optional

import pytest

from tunnel_backoff.config import Settings
from tunnel_backoff.retry.engine import RetryEngine


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def error_type_entry(
    error_type: str,
    details: list[str],
    retry: list[str],
    events: Optional[list[str]] = None,
    **extra: Any,
) -> dict[str, Any]:
    """One ErrorTypes element in the carrier config grammar."""
    entry = {
        "ErrorType": error_type,
        "ErrorDetails": details,
        "RetryArray": retry,
        "UnthrottlingEvents": events or [],
    }
    entry.update(extra)
    return entry


def apn_group(apn: str, *entries: dict[str, Any]) -> dict[str, Any]:
    return {"ApnName": apn, "ErrorTypes": list(entries)}


def policy_json(*groups: dict[str, Any]) -> str:
    return json.dumps(list(groups))


class PolicyConfigBuilder:
    """Carrier config helpers exposed to tests through the config_builder fixture."""

    entry = staticmethod(error_type_entry)
    group = staticmethod(apn_group)
    dumps = staticmethod(policy_json)


@pytest.fixture
def config_builder() -> type[PolicyConfigBuilder]:
    return PolicyConfigBuilder


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.ERROR_STATS_MAX_APNS = 2
    """
    return Settings(
        # === Application ===
        APP_NAME="Tunnel Backoff Engine (Test)",
        APP_VERSION="0.1.0",
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Policy Configuration ===
        DEFAULT_POLICY_PATH=None,
        POLICY_SCHEMA_PATH=None,

        # === Error Statistics ===
        ERROR_STATS_MAX_APNS=10,
        ERROR_STATS_MAX_ERRORS=1000,

        # === Monitoring ===
        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def carrier_config() -> str:
    """Carrier config for APN "ims" used across engine tests.

    - IKE 24/34: 4, 8, 16 (no sentinel)
    - IKE 9000-9050: 30, 60, -1
    - IKE 15500: 10 with 6 attempts per alternate server
    - IKE 36: 0, 0, 5 with handover fallback after 2 attempts
    - GENERIC IO_EXCEPTION: 2, 4, -1, unthrottled by APM_ENABLE_EVENT
    """
    return policy_json(
        apn_group(
            "ims",
            error_type_entry("IKE_PROTOCOL_ERROR_TYPE", ["24", "34"], ["4", "8", "16"]),
            error_type_entry("IKE_PROTOCOL_ERROR_TYPE", ["9000-9050"], ["30", "60", "-1"]),
            error_type_entry(
                "IKE_PROTOCOL_ERROR_TYPE", ["15500"], ["10"], NumAttemptsPerFqdn="6"
            ),
            error_type_entry(
                "IKE_PROTOCOL_ERROR_TYPE", ["36"], ["0", "0", "5"], HandoverAttemptCount="2"
            ),
            error_type_entry(
                "GENERIC_ERROR_TYPE", ["IO_EXCEPTION"], ["2", "4", "-1"], ["APM_ENABLE_EVENT"]
            ),
        ),
    )


@pytest.fixture
def engine_factory(test_settings: Settings, fake_clock: FakeClock) -> Callable[..., RetryEngine]:
    """Build engines on the fake clock with a seeded random source."""

    def _make(carrier_config: Optional[str] = None, **kwargs: Any) -> RetryEngine:
        kwargs.setdefault("clock", fake_clock)
        kwargs.setdefault("rng", random.Random(1234))
        return RetryEngine(test_settings, carrier_config=carrier_config, **kwargs)

    return _make
