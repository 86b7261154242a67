"""
Tests for client configuration loading.
"""

import json

import pytest

from mistral_client.config import Config, DEFAULT_BASE_URL
from mistral_client.errors import ConfigError


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def config_file(tmp_path):
    """Write a JSON config file and return its path."""
    path = tmp_path / "client.json"
    path.write_text(json.dumps({
        "apiKey": "file-key",
        "baseUrl": "https://file.example.com/",
        "timeout": 12,
        "logging": {"level": "DEBUG"},
    }))
    return str(path)


# ============================================================================
# Loading
# ============================================================================

class TestConfigSources:
    """Tests for configuration sources and their precedence."""

    def test_defaults_with_override_key(self, clean_env):
        config = Config(use_dotenv=False, api_key="k")
        assert config.get_api_key() == "k"
        assert config.get_base_url() == DEFAULT_BASE_URL
        assert config.get_timeout() == 30.0
        assert config.get_user_agent().startswith("mistral-client-python/")
        assert config.get_log_level() == "INFO"
        assert config.get_log_file() is None

    def test_environment(self, clean_env):
        clean_env.setenv("MISTRAL_API_KEY", "env-key")
        clean_env.setenv("MISTRAL_BASE_URL", "https://env.example.com")
        clean_env.setenv("MISTRAL_TIMEOUT", "5.5")
        clean_env.setenv("MISTRAL_LOG_LEVEL", "warning")

        config = Config(use_dotenv=False)

        assert config.get_api_key() == "env-key"
        assert config.get_base_url() == "https://env.example.com"
        assert config.get_timeout() == 5.5
        assert config.get_log_level() == "warning"

    def test_file(self, clean_env, config_file):
        config = Config(config_file, use_dotenv=False)
        assert config.get_api_key() == "file-key"
        assert config.get_base_url() == "https://file.example.com"
        assert config.get_timeout() == 12
        assert config.get_log_level() == "DEBUG"
        # Untouched nested defaults survive the merge
        assert config.get_log_format() == Config.DEFAULT_CONFIG["logging"]["format"]

    def test_env_beats_file(self, clean_env, config_file):
        clean_env.setenv("MISTRAL_API_KEY", "env-key")
        config = Config(config_file, use_dotenv=False)
        assert config.get_api_key() == "env-key"
        assert config.get_timeout() == 12

    def test_override_beats_env(self, clean_env):
        clean_env.setenv("MISTRAL_API_KEY", "env-key")
        config = Config(use_dotenv=False, api_key="override-key", timeout=3)
        assert config.get_api_key() == "override-key"
        assert config.get_timeout() == 3

    def test_missing_file_uses_defaults(self, clean_env, tmp_path):
        config = Config(str(tmp_path / "missing.json"), use_dotenv=False, api_key="k")
        assert config.get_base_url() == DEFAULT_BASE_URL

    def test_dotenv_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("MISTRAL_API_KEY=dotenv-key\n")
        clean_env.chdir(tmp_path)
        # Register the variable so the value load_dotenv writes is undone
        clean_env.setenv("MISTRAL_API_KEY", "placeholder")
        clean_env.delenv("MISTRAL_API_KEY")
        config = Config()
        assert config.get_api_key() == "dotenv-key"


class TestConfigValidation:
    """Tests for configuration validation."""

    def test_missing_api_key(self, clean_env):
        with pytest.raises(ConfigError) as exc_info:
            Config(use_dotenv=False)
        assert exc_info.value.config_key == "apiKey"

    def test_blank_api_key(self, clean_env):
        with pytest.raises(ConfigError):
            Config(use_dotenv=False, api_key="   ")

    def test_bad_base_url(self, clean_env):
        with pytest.raises(ConfigError) as exc_info:
            Config(use_dotenv=False, api_key="k", base_url="ftp://example.com")
        assert exc_info.value.config_key == "baseUrl"

    @pytest.mark.parametrize("timeout", [0, -1, True, "30"])
    def test_bad_timeout(self, clean_env, timeout):
        with pytest.raises(ConfigError):
            Config(use_dotenv=False, api_key="k", timeout=timeout)

    def test_unparseable_env_timeout(self, clean_env):
        clean_env.setenv("MISTRAL_API_KEY", "k")
        clean_env.setenv("MISTRAL_TIMEOUT", "soon")
        with pytest.raises(ConfigError) as exc_info:
            Config(use_dotenv=False)
        assert exc_info.value.config_key == "timeout"

    def test_bad_log_level(self, clean_env):
        clean_env.setenv("MISTRAL_LOG_LEVEL", "chatty")
        with pytest.raises(ConfigError):
            Config(use_dotenv=False, api_key="k")

    def test_unknown_override(self, clean_env):
        with pytest.raises(ConfigError):
            Config(use_dotenv=False, api_key="k", retries=3)

    def test_invalid_json_file(self, clean_env, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            Config(str(path), use_dotenv=False, api_key="k")


class TestConfigAccess:
    """Tests for configuration accessors."""

    def test_dotted_get(self, config):
        assert config.get("logging.level") == "INFO"
        assert config.get("logging.missing", "fallback") == "fallback"
        assert config.get("nope.deeper") is None

    def test_to_dict_masks_key(self, config):
        data = config.to_dict()
        assert data["apiKey"] == "***"
        assert config.get_api_key() != "***"

    def test_repr_hides_key(self, config):
        assert config.get_api_key() not in repr(config)
