"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from src.config import AppConfig, _validate_config


def with_section(section: str, **overrides) -> AppConfig:
    config = AppConfig()
    return replace(config, **{section: replace(getattr(config, section), **overrides)})


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_defaults(self):
        config = AppConfig()
        assert config.trust.inject_below_confidence == 50
        assert config.trust.high_priority_below == 40
        assert config.trust.medium_priority_below == 60
        assert "technician-assignment" in config.trust.sensitive_views
        assert config.drop_off.lookback_window == 20
        assert config.engine.reinit_policy == "reject"

    def test_invalid_inject_threshold(self):
        config = with_section("trust", inject_below_confidence=150)
        with pytest.raises(ValueError, match="TRUST_INJECT_BELOW"):
            _validate_config(config)

    def test_priority_bands_out_of_order(self):
        config = with_section("trust", high_priority_below=70, medium_priority_below=60)
        with pytest.raises(ValueError, match="TRUST_HIGH_PRIORITY_BELOW"):
            _validate_config(config)

    def test_invalid_escalation_visits(self):
        config = with_section("conversion", escalation_min_repeated_visits=0)
        with pytest.raises(ValueError, match="ESCALATION_MIN_REPEATED_VISITS"):
            _validate_config(config)

    def test_lookback_shorter_than_rule(self):
        config = with_section("drop_off", lookback_window=2)
        with pytest.raises(ValueError, match="DROP_OFF_LOOKBACK_WINDOW"):
            _validate_config(config)

    def test_invalid_bounce_visits(self):
        config = with_section("drop_off", bounce_visit_count=1)
        with pytest.raises(ValueError, match="DROP_OFF_BOUNCE_VISITS"):
            _validate_config(config)

    def test_invalid_decline_drop(self):
        config = with_section("drop_off", decline_min_drop=0)
        with pytest.raises(ValueError, match="DROP_OFF_DECLINE_MIN_DROP"):
            _validate_config(config)

    def test_invalid_reinit_policy(self):
        config = with_section("engine", reinit_policy="merge")
        with pytest.raises(ValueError, match="BOOKING_REINIT_POLICY"):
            _validate_config(config)

    def test_invalid_baseline_confidence(self):
        config = with_section("engine", baseline_confidence=-5)
        with pytest.raises(ValueError, match="BASELINE_CONFIDENCE"):
            _validate_config(config)

    def test_invalid_abandoned_timeout(self):
        config = with_section("drop_off", abandoned_timeout_seconds=0)
        with pytest.raises(ValueError, match="DROP_OFF_ABANDONED_TIMEOUT_SEC"):
            _validate_config(config)

    def test_invalid_hesitation_timeout(self):
        config = with_section("drop_off", hesitation_timeout_seconds=-1)
        with pytest.raises(ValueError, match="DROP_OFF_HESITATION_TIMEOUT_SEC"):
            _validate_config(config)

    def test_log_format_includes_booking_id(self):
        from src.config import LOG_FORMAT

        assert "%(booking_id)s" in LOG_FORMAT

    def test_overwrite_policy_allowed(self):
        _validate_config(with_section("engine", reinit_policy="overwrite"))


class TestEnvParsing:
    def test_safe_int_parsing(self):
        from src.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        from src.config import _safe_float

        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_int_rejects_garbage(self, monkeypatch):
        from src.config import _safe_int

        monkeypatch.setenv("BOOKING_TEST_INT", "lots")
        with pytest.raises(ValueError, match="BOOKING_TEST_INT"):
            _safe_int("BOOKING_TEST_INT", "1")

    def test_csv_tuple(self, monkeypatch):
        from src.config import _csv_tuple

        monkeypatch.setenv("BOOKING_TEST_CSV", " checkout, ,sla-view ")
        assert _csv_tuple("BOOKING_TEST_CSV", "") == ("checkout", "sla-view")
