"""Integration test fixtures.

Integration tests drive the engine through its public facade with the
packaged default policies and real loader stages. Nothing external is
required.
"""

import pytest

from tunnel_backoff.loader import PolicyLoader
from tunnel_backoff.models.policy import PolicyTable


@pytest.fixture
def default_table(test_settings) -> PolicyTable:
    """Packaged built-in default policy table."""
    return PolicyLoader(test_settings).load_default()
