"""Tests for settings validation and polling bounds."""

import pytest

from gtm_infra.common.config import InfraSettings


def make_settings(**overrides) -> InfraSettings:
    defaults = {"db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return InfraSettings(**defaults)


class TestPollInterval:
    def test_default_interval(self):
        assert make_settings().clamp_poll_interval() == 3.0

    def test_clamped_to_bounds(self):
        settings = make_settings(poll_min_interval=1.0, poll_max_interval=30.0)
        assert settings.clamp_poll_interval(0.1) == 1.0
        assert settings.clamp_poll_interval(120) == 30.0
        assert settings.clamp_poll_interval(5) == 5


class TestProductionValidation:
    def test_development_warns_on_default_key(self):
        with pytest.warns(UserWarning):
            make_settings().validate_for_production()

    def test_production_rejects_default_key(self):
        settings = make_settings(environment="production", stripe_webhook_secret="whsec_x")
        with pytest.raises(RuntimeError, match="GTM_INFRA_API_KEY"):
            settings.validate_for_production()

    def test_production_requires_webhook_secret(self):
        settings = make_settings(environment="production", api_key="a-real-secret-key")
        with pytest.raises(RuntimeError, match="STRIPE_WEBHOOK_SECRET"):
            settings.validate_for_production()

    def test_production_ok(self):
        settings = make_settings(
            environment="production", api_key="a-real-secret-key", stripe_webhook_secret="whsec_x",
        )
        settings.validate_for_production()

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("GTM_INFRA_STEP_MAX_RETRIES", "5")
        assert make_settings().step_max_retries == 5
