"""Tests for settings validation and feature flags."""

import pytest
from lingua_kb.core.config import Settings
from pydantic import ValidationError


class TestSettings:
    def test_non_production_namespaces_are_prefixed(self, test_settings):
        assert not test_settings.is_production
        assert test_settings.NAMESPACE_PREFIX == "test-"

    def test_production_has_no_prefix(self):
        settings = Settings(ENVIRONMENT="prod", DEEPL_API_KEY="key")

        assert settings.is_production
        assert settings.NAMESPACE_PREFIX == ""

    def test_deepl_key_required_in_production(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(ENVIRONMENT="production", DEEPL_API_KEY="  ")

        assert "DEEPL_API_KEY required in production" in str(exc_info.value)

    def test_deepl_key_optional_elsewhere(self):
        assert Settings(ENVIRONMENT="development", DEEPL_API_KEY="").DEEPL_API_KEY == ""

    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_lid_threshold_bounds(self, value):
        with pytest.raises(ValidationError):
            Settings(LID_CONFIDENCE_THRESHOLD=value)

    def test_model_needs_provider_prefix(self):
        with pytest.raises(ValidationError):
            Settings(LLM_CLASSIFICATION_MODEL="gpt-4o-mini")

    @pytest.mark.parametrize(
        "field", ["INDEX_UPSERT_BATCH_SIZE", "REINDEX_CONCURRENCY", "RETRY_ATTEMPTS", "TRANSLATION_MEMORY_MAX_POLLS"]
    )
    def test_counts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_urls_are_normalized(self):
        settings = Settings(ALERT_WEBHOOK_URL=" https://hooks.example.com/x/ ")

        assert settings.ALERT_WEBHOOK_URL == "https://hooks.example.com/x"

    def test_defaults(self):
        settings = Settings()

        assert settings.INDEX_UPSERT_BATCH_SIZE == 90
        assert settings.LID_CONFIDENCE_THRESHOLD == 0.95
        assert settings.DEEPL_COST_PER_CHAR == pytest.approx(20 / 1_000_000)

    def test_get_settings_is_cached_until_reset(self):
        from lingua_kb.core.config import get_settings, reset_settings

        reset_settings()
        first = get_settings()
        assert get_settings() is first

        reset_settings()
        assert get_settings() is not first
        reset_settings()


class TestFeatureFlags:
    def test_seeded_from_settings(self):
        from lingua_kb.services.feature_flags import (
            AUTO_INDEXING,
            AUTO_TRANSLATION_CONFIRM,
            LLM_CLASSIFICATION,
            TRANSLATION,
            SettingsFeatureFlags,
        )

        flags = SettingsFeatureFlags(Settings(AUTO_TRANSLATION_CONFIRM=True, TRANSLATION_ENABLED=False))

        assert flags.snapshot() == {
            AUTO_INDEXING: True,
            AUTO_TRANSLATION_CONFIRM: True,
            TRANSLATION: False,
            LLM_CLASSIFICATION: True,
        }

    def test_unknown_flags_are_off(self, flags):
        assert flags.is_enabled("does-not-exist") is False

    def test_runtime_override(self, flags):
        from lingua_kb.services.feature_flags import TRANSLATION, FeatureFlags

        flags.set(TRANSLATION, False)

        assert not flags.is_enabled(TRANSLATION)
        assert isinstance(flags, FeatureFlags)
