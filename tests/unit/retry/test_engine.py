"""
Unit tests for the RetryEngine facade.
"""

import threading
from unittest.mock import Mock

import pytest
from prometheus_client import REGISTRY

from tunnel_backoff.loader import DefaultPolicyError
from tunnel_backoff.models.enums import FailureCause, ThrottleEvent
from tunnel_backoff.models.error_descriptor import ErrorDescriptor

AUTH = ErrorDescriptor.protocol(24)
INTERNAL_ADDRESS = ErrorDescriptor.protocol(36)
CONGESTION = ErrorDescriptor.protocol(15500)
IO_ERROR = ErrorDescriptor.of("IKE_INTERNAL_IO_EXCEPTION")
NO_ERROR = ErrorDescriptor.no_error()


def sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestRetryEngineReporting:
    """Reporting and throttle queries with a carrier configuration."""

    @pytest.fixture(autouse=True)
    def _engine(self, engine_factory, carrier_config, fake_clock):
        self.clock = fake_clock
        self.engine = engine_factory(carrier_config)

    def report_many(self, error, count, apn="ims"):
        return [self.engine.report_error(apn, error) for _ in range(count)]

    def test_uses_carrier_policies(self):
        assert not self.engine.using_default_policies
        assert self.report_many(AUTH, 4) == [4, 8, 16, 16]

    def test_range_policy(self):
        assert self.report_many(ErrorDescriptor.protocol(9030), 3) == [30, 60, 60]

    def test_other_apn_uses_default(self):
        assert self.report_many(AUTH, 3, apn="internet") == [5, 10, 10]

    def test_throttle_window(self):
        self.engine.report_error("ims", AUTH)

        assert not self.engine.can_attempt("ims")
        assert self.engine.remaining_delay_ms("ims") == 4000

        self.clock.advance(4)
        assert self.engine.can_attempt("ims")

    def test_last_error_and_attempt_count(self):
        self.report_many(AUTH, 2)
        self.engine.report_error("ims", IO_ERROR)

        assert self.engine.last_error("ims") == IO_ERROR
        assert self.engine.attempt_count_of_last_cause("ims") == 1

        self.engine.report_error("ims", AUTH)
        assert self.engine.attempt_count_of_last_cause("ims") == 3

    def test_no_error_resets_apn(self):
        self.report_many(AUTH, 3)

        assert self.engine.report_error("ims", NO_ERROR) == -1
        assert self.engine.last_error("ims") == NO_ERROR
        assert self.engine.remaining_delay_ms("ims") == -1
        assert self.engine.can_attempt("ims")
        assert self.engine.report_error("ims", AUTH) == 4

    def test_explicit_backoff(self):
        self.report_many(AUTH, 2)

        assert self.engine.report_error("ims", AUTH, backoff_seconds=300) == 300
        assert self.engine.remaining_delay_ms("ims") == 300_000
        assert self.engine.report_error("ims", AUTH) == 4
        assert self.engine.attempt_count_of_last_cause("ims") == 4

    def test_negative_backoff_rejected(self):
        with pytest.raises(ValueError):
            self.engine.report_error("ims", AUTH, backoff_seconds=-5)

        assert self.engine.most_recent_failure_cause() == FailureCause.NONE
        assert self.engine.last_error("ims") == NO_ERROR

    def test_rejected_backoff_keeps_previous_most_recent_error(self):
        self.engine.report_error("ims", IO_ERROR)

        with pytest.raises(ValueError):
            self.engine.report_error("internet", AUTH, backoff_seconds=0.9)

        assert self.engine.most_recent_failure_cause() == FailureCause.IKEV2_MSG_TIMEOUT
        assert self.engine.error_stats.count("internet", AUTH) == 0

    def test_fresh_attach(self):
        self.engine.report_error("ims", INTERNAL_ADDRESS)
        assert not self.engine.should_use_fresh_attach("ims")

        self.engine.report_error("ims", INTERNAL_ADDRESS)
        assert self.engine.should_use_fresh_attach("ims")

        self.engine.report_error("ims", NO_ERROR)
        assert not self.engine.should_use_fresh_attach("ims")

    def test_alternate_index(self):
        indexes = []
        for _ in range(12):
            self.engine.report_error("ims", CONGESTION)
            indexes.append(self.engine.current_alternate_index("ims", 2))

        assert indexes == [0, 0, 0, 0, 0, 1, 1, 1, 1, 1, 1, 0]

    def test_alternate_index_invalid_total(self):
        self.engine.report_error("ims", CONGESTION)

        with pytest.raises(ValueError):
            self.engine.current_alternate_index("ims", 0)

    def test_failure_causes(self):
        assert self.engine.failure_cause("ims") == FailureCause.NONE
        assert self.engine.most_recent_failure_cause() == FailureCause.NONE

        self.engine.report_error("ims", AUTH)
        self.engine.report_error("internet", CONGESTION)

        assert self.engine.failure_cause("ims") == FailureCause.IKEV2_AUTH_FAILURE
        assert self.engine.most_recent_failure_cause() == FailureCause.CONGESTION

        self.engine.report_error("internet", NO_ERROR)
        assert self.engine.most_recent_failure_cause() == FailureCause.NONE
        assert self.engine.failure_cause("ims") == FailureCause.IKEV2_AUTH_FAILURE

    def test_error_stats(self):
        self.report_many(AUTH, 2)
        self.engine.report_error("ims", AUTH, backoff_seconds=1)
        self.engine.report_error("ims", NO_ERROR)

        assert self.engine.error_stats.count("ims", AUTH) == 3
        assert self.engine.error_stats.total == 3

    def test_concurrent_reports_are_serialized(self):
        def worker():
            for _ in range(50):
                self.engine.report_error("ims", AUTH)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert self.engine.attempt_count_of_last_cause("ims") == 200


class TestRetryEngineConfiguration:
    """Configuration loading and reload semantics."""

    def test_absent_config_uses_default(self, engine_factory):
        engine = engine_factory(None)

        assert engine.using_default_policies
        assert [engine.report_error("ims", AUTH) for _ in range(6)] == [5, 10, 10, 20, 40, 80]
        assert [engine.report_error("ims", INTERNAL_ADDRESS) for _ in range(4)] == [0, 0, 0, 10]

    def test_blank_config_treated_as_absent(self, engine_factory):
        assert engine_factory("   ").using_default_policies

    def test_commented_carrier_config_falls_back_to_default(self, engine_factory, carrier_config):
        engine = engine_factory("# not json\n" + carrier_config)

        assert engine.using_default_policies
        assert engine.report_error("ims", AUTH) == 5

    def test_rejected_config_falls_back_to_default(self, engine_factory, config_builder):
        b = config_builder
        bad = b.dumps(
            b.group(
                "ims",
                b.entry("IKE_PROTOCOL_ERROR_TYPE", ["24"], ["1"]),
                b.entry("GENERIC_ERROR_TYPE", ["IO_EXCEPTION"], ["1"], HandoverAttemptCount="3"),
            )
        )

        engine = engine_factory(bad)

        assert engine.using_default_policies
        assert [engine.report_error("ims", AUTH) for _ in range(6)] == [5, 10, 10, 20, 40, 80]
        assert [engine.report_error("ims", INTERNAL_ADDRESS) for _ in range(4)] == [0, 0, 0, 10]

    def test_rejection_log_names_loader_stage(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config)
        engine._log = Mock()

        engine.on_configuration_changed('[{"ApnName": "ims"}]')

        kwargs = engine._log.warning.call_args.kwargs
        assert kwargs["stage"] == 2
        assert "validation_errors" in kwargs["details"]

    @pytest.mark.parametrize("raw", ["{", '{"ApnName": "ims"}', '[{"ApnName": "ims"}]'])
    def test_malformed_config_falls_back_to_default(self, engine_factory, raw):
        assert engine_factory(raw).using_default_policies

    def test_empty_array_config_is_accepted(self, engine_factory):
        engine = engine_factory("[]")

        assert not engine.using_default_policies
        assert engine.report_error("ims", AUTH) == 5

    def test_reload_discards_all_state(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config)
        engine.report_error("ims", AUTH)
        engine.report_error("internet", IO_ERROR)

        engine.on_configuration_changed(carrier_config)

        assert engine.last_error("ims") == NO_ERROR
        assert engine.last_error("internet") == NO_ERROR
        assert engine.can_attempt("ims")
        assert engine.most_recent_failure_cause() == FailureCause.NONE
        assert engine.report_error("ims", AUTH) == 4

    def test_reload_to_none_switches_to_default(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config)

        engine.on_configuration_changed(None)

        assert engine.using_default_policies
        assert engine.report_error("ims", AUTH) == 5

    def test_reload_with_rejected_config_still_clears(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config)
        engine.report_error("ims", AUTH)

        engine.on_configuration_changed("not json")

        assert engine.using_default_policies
        assert engine.last_error("ims") == NO_ERROR

    def test_reload_does_not_notify_listener(self, engine_factory, carrier_config, mock_listener):
        engine = engine_factory(carrier_config, unthrottle_listener=mock_listener)
        engine.report_error("ims", IO_ERROR)

        engine.on_configuration_changed(carrier_config)

        mock_listener.notify_apn_unthrottled.assert_not_called()

    def test_broken_default_is_fatal(self, engine_factory, test_settings, tmp_path):
        path = tmp_path / "defaults.json"
        path.write_text("[]")
        test_settings.DEFAULT_POLICY_PATH = str(path)

        with pytest.raises(DefaultPolicyError):
            engine_factory(None)

    def test_subscribed_events(self, engine_factory, config_builder):
        b = config_builder
        engine = engine_factory(
            b.dumps(b.group("ims", b.entry("*", ["*"], ["1"], ["CROSS_SIM_CALLING_ENABLE_EVENT"])))
        )

        events = engine.subscribed_events
        assert ThrottleEvent.CARRIER_CONFIG_CHANGED_EVENT in events
        assert ThrottleEvent.CROSS_SIM_CALLING_ENABLE_EVENT in events
        assert ThrottleEvent.WIFI_CALLING_DISABLE_EVENT in events
        assert ThrottleEvent.CELLINFO_CHANGED_EVENT not in events

        engine.on_configuration_changed(None)
        assert ThrottleEvent.CROSS_SIM_CALLING_ENABLE_EVENT not in engine.subscribed_events


class TestRetryEngineEvents:
    """Event-driven unthrottling through the facade."""

    @pytest.fixture(autouse=True)
    def _engine(self, engine_factory, carrier_config, mock_listener):
        self.listener = mock_listener
        self.engine = engine_factory(carrier_config, unthrottle_listener=mock_listener)

    def test_event_listed_by_policy_unthrottles(self):
        self.engine.report_error("ims", IO_ERROR)

        assert self.engine.on_event(ThrottleEvent.APM_ENABLE_EVENT) == ["ims"]
        assert self.engine.can_attempt("ims")
        assert self.engine.last_error("ims") == NO_ERROR
        self.listener.notify_apn_unthrottled.assert_called_once_with("ims")

    def test_event_name_string_accepted(self):
        self.engine.report_error("ims", IO_ERROR)

        assert self.engine.on_event("APM_ENABLE_EVENT") == ["ims"]

    def test_event_not_listed_is_ignored(self):
        # Carrier IO_EXCEPTION policy only lists APM_ENABLE_EVENT
        self.engine.report_error("ims", IO_ERROR)

        assert self.engine.on_event(ThrottleEvent.WIFI_DISABLE_EVENT) == []
        assert not self.engine.can_attempt("ims")

    def test_unknown_event_is_ignored(self):
        self.engine.report_error("ims", IO_ERROR)

        assert self.engine.on_event("REBOOT_EVENT") == []
        assert self.engine.last_error("ims") == IO_ERROR

    def test_event_logged_under_throttle_event_field(self):
        self.engine.report_error("ims", IO_ERROR)
        self.engine._log = Mock()

        self.engine.on_event("REBOOT_EVENT")
        self.engine.on_event(ThrottleEvent.APM_ENABLE_EVENT)

        self.engine._log.warning.assert_called_once_with(
            "Ignoring unknown throttle event", throttle_event="REBOOT_EVENT"
        )
        self.engine._log.debug.assert_called_with(
            "Throttle event handled", throttle_event="APM_ENABLE_EVENT", cleared_apns=["ims"]
        )
        self.listener.notify_apn_unthrottled.assert_called_once_with("ims")

    def test_carrier_config_changed_event_clears_all(self):
        self.engine.report_error("ims", AUTH)
        self.engine.report_error("internet", AUTH)

        cleared = self.engine.on_event(ThrottleEvent.CARRIER_CONFIG_CHANGED_EVENT)

        assert cleared == ["ims", "internet"]
        assert self.listener.notify_apn_unthrottled.call_count == 2

    def test_sequence_restarts_after_unthrottle(self):
        self.engine.report_error("ims", IO_ERROR)
        self.engine.report_error("ims", IO_ERROR)
        self.engine.on_event(ThrottleEvent.APM_ENABLE_EVENT)

        assert self.engine.report_error("ims", IO_ERROR) == 2


class TestRetryEngineDiagnostics:
    def test_dump(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config, slot_id=1)
        engine.report_error("ims", AUTH)

        dump = engine.dump()

        assert "slot 1" in dump
        assert "APN: ims" in dump
        assert "last_error: IKE_PROTOCOL_EXCEPTION:24" in dump
        assert "attempt_count=1" in dump
        assert "ErrorStats" in dump

    def test_log_policies(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config)
        engine._log = Mock()

        engine.log_policies()

        # 5 carrier policies + 4 default policies
        assert engine._log.debug.call_count == 9


class TestRetryEngineMetrics:
    """Prometheus collectors (enabled explicitly)."""

    @pytest.fixture(autouse=True)
    def _enable_metrics(self, test_settings):
        test_settings.PROMETHEUS_ENABLED = True

    def test_report_metrics(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config)
        policy_labels = {"error_kind": "IKE_PROTOCOL_EXCEPTION", "path": "policy"}
        override_labels = {"error_kind": "IKE_PROTOCOL_EXCEPTION", "path": "override"}
        before_policy = sample("tunnel_errors_reported_total", policy_labels)
        before_override = sample("tunnel_errors_reported_total", override_labels)

        engine.report_error("ims", AUTH)
        engine.report_error("ims", AUTH, backoff_seconds=3)

        assert sample("tunnel_errors_reported_total", policy_labels) == before_policy + 1
        assert sample("tunnel_errors_reported_total", override_labels) == before_override + 1

    def test_rejected_config_metric(self, engine_factory):
        labels = {"source": "carrier", "outcome": "rejected"}
        before = sample("tunnel_policy_config_loads_total", labels)

        engine_factory("not json")

        assert sample("tunnel_policy_config_loads_total", labels) == before + 1

    def test_unthrottle_metric(self, engine_factory, carrier_config):
        engine = engine_factory(carrier_config)
        labels = {"event": "APM_ENABLE_EVENT"}
        before = sample("tunnel_unthrottle_total", labels)

        engine.report_error("ims", IO_ERROR)
        engine.on_event(ThrottleEvent.APM_ENABLE_EVENT)

        assert sample("tunnel_unthrottle_total", labels) == before + 1
