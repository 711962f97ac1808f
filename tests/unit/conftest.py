"""Unit test fixtures (mocks and stubs).

Provides mock objects for testing engine collaborators in isolation.
"""

import pytest
from unittest.mock import Mock

from tunnel_backoff.models.enums import PolicyErrorType, ThrottleEvent
from tunnel_backoff.models.policy import ErrorDetailPattern, ErrorPolicy, RetryDelay


@pytest.fixture
def mock_listener():
    """Mock UnthrottleListener recording notified APNs."""
    mock = Mock()
    mock.notify_apn_unthrottled = Mock(return_value=None)
    return mock


@pytest.fixture
def fallback_policy() -> ErrorPolicy:
    """Universal "*"/"*" policy: 4, 8, 16."""
    return ErrorPolicy(
        apn_match="*",
        error_type=PolicyErrorType.ANY,
        error_details=(ErrorDetailPattern(raw="*"),),
        retry_delays=(RetryDelay(4), RetryDelay(8), RetryDelay(16)),
        unthrottle_events=frozenset({ThrottleEvent.APM_ENABLE_EVENT}),
    )
