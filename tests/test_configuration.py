"""
Tests for Configuration Management System

Tests settings defaults, validation and the helpers used to build
per-run and per-test configuration values.
"""

import pytest
from pathlib import Path
from pydantic import ValidationError

from configs.settings import Settings, get_settings, create_test_settings


class TestSettings:
    """Test the Settings class and its various configurations."""

    def test_default_settings(self):
        """Test default values match the documented pipeline knobs."""
        settings = Settings()

        assert settings.BATCH_SIZE == 1000
        assert settings.CONCURRENCY_LIMIT == 5
        assert settings.MAX_LINES_PER_SHARD == 1000000
        assert settings.DENSE_DIM == 384
        assert settings.MAX_SPARSE_FEATURES == 100
        assert settings.MAX_TITLE_LENGTH == 500
        assert settings.MAX_DESCRIPTION_LENGTH == 2000
        assert settings.MAX_CATEGORIES == 10
        assert settings.DEFAULT_CATEGORY == "Products"
        assert settings.COMBINED_OUTPUT_NAME == "all_data_files_commerce_ready"
        assert settings.KEYWORD_BOOST == {
            'title': 3.0,
            'brand': 2.5,
            'category': 2.0,
            'description': 1.5,
        }

    def test_log_level_validation(self):
        """Test log level validation."""
        for level in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
            assert Settings(LOG_LEVEL=level.lower()).LOG_LEVEL == level

        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="INVALID")

    @pytest.mark.parametrize("field", ["BATCH_SIZE", "CONCURRENCY_LIMIT", "MAX_LINES_PER_SHARD", "RETRY_ATTEMPTS"])
    def test_positive_limits(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            Settings(RETRY_DELAY_MS=-1)

    def test_invalid_pattern_rejected(self):
        with pytest.raises(ValidationError):
            Settings(INCLUDE_PATTERN="(unclosed")

    def test_keyword_boost_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(KEYWORD_BOOST={'title': 0})

    def test_context_boost(self):
        settings = Settings()
        assert settings.context_boost('title') == 3.0
        assert settings.context_boost('brand') == 2.5
        assert settings.context_boost('general') == 1.0

    def test_computed_properties(self):
        settings = Settings(STREAMING_THRESHOLD_MB=2, RETRY_DELAY_MS=250)
        assert settings.streaming_threshold_bytes == 2 * 1024 * 1024
        assert settings.retry_delay_seconds == 0.25


class TestSettingsHelpers:

    def test_get_settings_overrides(self):
        settings = get_settings(BATCH_SIZE=10, SHARD_OUTPUT=False)
        assert settings.BATCH_SIZE == 10
        assert settings.SHARD_OUTPUT is False

    def test_get_settings_returns_fresh_values(self):
        assert get_settings() is not get_settings()

    def test_create_test_settings(self, tmp_path):
        settings = create_test_settings(tmp_path, BATCH_SIZE=7)

        assert Path(settings.INPUT_DIRECTORY) == tmp_path / "Data"
        assert Path(settings.OUTPUT_DIRECTORY) == tmp_path / "output"
        assert Path(settings.TEMP_DIR) == tmp_path / "temp"
        assert settings.ENABLE_PROGRESS_BAR is False
        assert settings.RETRY_DELAY_MS == 0
        assert settings.BATCH_SIZE == 7
