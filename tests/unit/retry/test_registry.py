"""
Unit tests for EngineRegistry.
"""

import pytest

from tunnel_backoff.models.error_descriptor import ErrorDescriptor
from tunnel_backoff.retry.registry import EngineRegistry


class TestEngineRegistry:
    @pytest.fixture(autouse=True)
    def _registry(self, test_settings, fake_clock):
        self.registry = EngineRegistry(test_settings, clock=fake_clock)

    def test_get_or_create_is_idempotent(self):
        first = self.registry.get_or_create(0)
        second = self.registry.get_or_create(0)

        assert first is second
        assert first.slot_id == 0
        assert len(self.registry) == 1

    def test_slots_are_isolated(self, carrier_config):
        ims_slot = self.registry.get_or_create(0, carrier_config)
        other_slot = self.registry.get_or_create(1)

        ims_slot.report_error("ims", ErrorDescriptor.protocol(24))

        assert other_slot.can_attempt("ims")
        assert not ims_slot.using_default_policies
        assert other_slot.using_default_policies

    def test_get_unknown_slot(self):
        assert self.registry.get(3) is None
        assert 3 not in self.registry

    def test_release(self):
        engine = self.registry.get_or_create(0)

        assert self.registry.release(0) is engine
        assert 0 not in self.registry
        assert self.registry.release(0) is None
        assert self.registry.get_or_create(0) is not engine

    def test_release_all(self):
        self.registry.get_or_create(0)
        self.registry.get_or_create(1)

        self.registry.release_all()

        assert len(self.registry) == 0
