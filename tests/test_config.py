"""Tests for settings loading."""

import pytest

from core.config import Settings, load_settings, settings
from core.errors import ConfigurationError


class TestSettings:
    def test_bucket_uris_are_reduced_to_names(self):
        assert settings.INPUT_BUCKET == "invoice-input"
        assert settings.OUTPUT_BUCKET == "invoice-output"

    def test_valid_keys_are_trimmed(self):
        assert settings.valid_keys == frozenset({"key-one", "key-two"})

    def test_defaults(self):
        assert settings.MAX_FILE_SIZE_BYTES == 10 * 1024 * 1024
        assert settings.MAX_FILES == 10
        assert settings.RATE_LIMIT_MAX_REQUESTS == 15
        assert settings.RATE_LIMIT_WINDOW_SECONDS == 3600

    def test_blank_hmac_key_means_default_credentials(self, monkeypatch):
        monkeypatch.setenv("GCS_HMAC_ACCESS_KEY", "")
        assert Settings().GCS_HMAC_ACCESS_KEY is None

    def test_output_prefix_slashes_stripped(self, monkeypatch):
        monkeypatch.setenv("GCS_OUTPUT_BUCKET_PREFIX", "/invoices/out/")
        assert Settings().GCS_OUTPUT_BUCKET_PREFIX == "invoices/out"


class TestFailFast:
    def test_missing_required_setting(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_DOCUMENT_PROCESSOR_ID")
        with pytest.raises(ConfigurationError, match="GOOGLE_DOCUMENT_PROCESSOR_ID"):
            load_settings()

    def test_empty_key_set_rejected(self, monkeypatch):
        monkeypatch.setenv("VALID_KEYS", " , ")
        with pytest.raises(ConfigurationError, match="VALID_KEYS"):
            load_settings()
