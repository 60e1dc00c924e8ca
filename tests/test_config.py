import pytest
from unittest.mock import patch
from clarion.config.settings import ClarionConfig, DEFAULT_VOICE_MODEL, create_example_env_file, load_config
from pathlib import Path
import tempfile
import os

MISSING = Path("/nonexistent/clarion.env")


class TestConfig:
    def test_default_config(self):
        config = ClarionConfig(deepgram_api_key="test_key")
        assert config.voice_model == DEFAULT_VOICE_MODEL
        assert config.rest_max_chars == 1000
        assert config.rest_timeout_s == 30.0
        assert config.flush_threshold == 900
        assert config.flush_every == 3
        assert config.send_interval_ms == 10
        assert config.language_detection is True

    def test_config_with_custom_values(self):
        config = ClarionConfig(
            deepgram_api_key="test_key",
            voice_model="aura-2-orion-en",
            rest_max_chars=500,
        )
        assert config.voice_model == "aura-2-orion-en"
        assert config.rest_max_chars == 500

    def test_missing_api_key_is_allowed(self):
        config = ClarionConfig()
        assert config.deepgram_api_key is None
        assert not config.has_credential

    def test_flush_threshold_must_stay_below_provider_limit(self):
        with pytest.raises(ValueError):
            ClarionConfig(flush_threshold=2000)

    @patch.dict(os.environ, {
        "DEEPGRAM_API_KEY": "test_key",
        "VOICE_MODEL": "aura-2-luna-en",
        "REST_MAX_CHARS": "250",
        "LANGUAGE_DETECTION": "false",
    })
    def test_load_config_from_env(self):
        config = load_config(MISSING)
        assert config.deepgram_api_key == "test_key"
        assert config.voice_model == "aura-2-luna-en"
        assert config.rest_max_chars == 250
        assert config.language_detection is False

    @patch.dict(os.environ, {}, clear=True)
    def test_load_config_without_key_warns(self, caplog):
        config = load_config(MISSING)
        assert not config.has_credential
        assert "DEEPGRAM_API_KEY is not set" in caplog.text

    @patch.dict(os.environ, {"FLUSH_EVERY": "not-a-number"}, clear=True)
    def test_invalid_number_raises(self):
        with pytest.raises(ValueError):
            load_config(MISSING)

    @patch.dict(os.environ, {}, clear=True)
    def test_config_from_temp_file(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.env', delete=False) as f:
            f.write("DEEPGRAM_API_KEY=temp_key\n")
            f.write("FLUSH_THRESHOLD=500\n")
            temp_path = f.name

        try:
            config = load_config(Path(temp_path))
            assert config.deepgram_api_key == "temp_key"
            assert config.flush_threshold == 500
        finally:
            os.unlink(temp_path)

    def test_create_example_env_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".env.example"
            create_example_env_file(path)
            content = path.read_text()
        assert "DEEPGRAM_API_KEY=" in content
        assert f"VOICE_MODEL={DEFAULT_VOICE_MODEL}" in content
