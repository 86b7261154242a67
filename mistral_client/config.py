"""
Configuration handling for the Mistral API client.

This module loads client settings from built-in defaults, an optional JSON
file, ``.env`` files and environment variables, then validates them.
Resolution order (later wins): defaults, file, environment, keyword overrides.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from . import __version__
from .errors import ConfigError


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://api.mistral.ai"


class Config:
    """Configuration manager for the Mistral API client."""

    # Default configuration values
    DEFAULT_CONFIG = {
        "apiKey": None,
        "baseUrl": DEFAULT_BASE_URL,
        "timeout": 30.0,
        "userAgent": f"mistral-client-python/{__version__}",
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None
        }
    }

    # Keyword overrides accepted by the constructor
    OVERRIDE_KEYS = {
        "api_key": "apiKey",
        "base_url": "baseUrl",
        "timeout": "timeout",
        "user_agent": "userAgent",
    }

    def __init__(
        self,
        config_path: Optional[str] = None,
        use_dotenv: bool = True,
        **overrides: Any
    ):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to a JSON configuration file (optional)
            use_dotenv: Whether to read a ``.env`` file into the environment first
            **overrides: ``api_key``, ``base_url``, ``timeout`` or ``user_agent``
                values that take precedence over every other source

        Raises:
            ConfigError: If the resulting configuration is invalid
        """
        self.config: Dict[str, Any] = {}
        self.config_path = config_path
        self._use_dotenv = use_dotenv
        self._overrides = overrides
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file, environment and overrides."""
        # Start with defaults
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path:
            self._load_from_file(self.config_path)

        if self._use_dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        self._load_from_env()

        self._apply_overrides()
        self._validate_config()

        logger.debug(f"Configuration loaded from {self.config_path or 'defaults'}")

    def _load_from_file(self, config_path: str) -> None:
        """
        Load configuration from JSON file.

        Args:
            config_path: Path to configuration file

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return

        try:
            with open(path, 'r') as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config file: {e}")

        if not isinstance(file_config, dict):
            raise ConfigError("Config file must contain a JSON object")

        self._merge_config(self.config, file_config)
        logger.info(f"Loaded configuration from {config_path}")

    def _load_from_env(self) -> None:
        """Load configuration overrides from environment variables."""
        env_mappings = {
            "MISTRAL_API_KEY": ("apiKey", "string"),
            "MISTRAL_BASE_URL": ("baseUrl", "string"),
            "MISTRAL_TIMEOUT": ("timeout", "float"),
            "MISTRAL_USER_AGENT": ("userAgent", "string"),
            "MISTRAL_LOG_LEVEL": ("logging.level", "string"),
            "MISTRAL_LOG_FORMAT": ("logging.format", "string"),
            "MISTRAL_LOG_FILE": ("logging.file", "string"),
        }

        for env_var, (config_path, value_type) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None and value != "":
                try:
                    parsed_value = self._parse_env_value(value, value_type)
                except ValueError as e:
                    raise ConfigError(f"Failed to parse {env_var}: {e}", config_path)
                self._set_nested_value(self.config, config_path, parsed_value)
                logger.debug(f"Loaded {env_var} from environment")

    def _apply_overrides(self) -> None:
        """Apply constructor keyword overrides."""
        for name, value in self._overrides.items():
            if name not in self.OVERRIDE_KEYS:
                raise ConfigError(f"Unknown configuration option: {name}")
            if value is not None:
                self.config[self.OVERRIDE_KEYS[name]] = value

    def _parse_env_value(self, value: str, value_type: str) -> Any:
        """
        Parse environment variable value based on type.

        Args:
            value: String value from environment
            value_type: Type to parse to (string, float)

        Returns:
            Parsed value

        Raises:
            ValueError: If value cannot be parsed
        """
        if value_type == "string":
            return value
        elif value_type == "float":
            return float(value)
        else:
            raise ValueError(f"Unknown value type: {value_type}")

    def _merge_config(self, base: Dict, override: Dict) -> None:
        """
        Recursively merge override config into base config.

        Args:
            base: Base configuration dictionary (modified in place)
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def _set_nested_value(self, config: Dict, path: str, value: Any) -> None:
        """
        Set a nested configuration value using dot notation.

        Args:
            config: Configuration dictionary
            path: Dot-separated path to the value
            value: Value to set
        """
        keys = path.split(".")
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: If configuration is invalid
        """
        api_key = self.get_api_key()
        if not isinstance(api_key, str) or not api_key.strip():
            raise ConfigError("API key is required", "apiKey")

        base_url = self.get_base_url()
        if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
            raise ConfigError(f"Base URL must be an http(s) URL, got: {base_url}", "baseUrl")

        timeout = self.get_timeout()
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"Timeout must be a positive number of seconds, got: {timeout}", "timeout")

        user_agent = self.get_user_agent()
        if not isinstance(user_agent, str) or not user_agent:
            raise ConfigError(f"Invalid user agent: {user_agent}", "userAgent")

        log_level = self.get_log_level()
        valid_levels = ("debug", "info", "warning", "error", "critical")
        if not isinstance(log_level, str) or log_level.lower() not in valid_levels:
            raise ConfigError(f"Invalid log level: {log_level}", "logging.level")

    def get_api_key(self) -> str:
        """Get the API key."""
        return self.config.get("apiKey")

    def get_base_url(self) -> str:
        """Get the API base URL without a trailing slash."""
        base_url = self.config.get("baseUrl", DEFAULT_BASE_URL)
        return base_url.rstrip("/") if isinstance(base_url, str) else base_url

    def get_timeout(self) -> float:
        """Get the request timeout in seconds."""
        return self.config.get("timeout", 30.0)

    def get_user_agent(self) -> str:
        """Get the user agent string."""
        return self.config.get("userAgent")

    def get_log_level(self) -> str:
        """Get client log level."""
        return self.config.get("logging", {}).get("level", "INFO")

    def get_log_format(self) -> str:
        """Get log format string."""
        return self.config.get("logging", {}).get(
            "format",
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    def get_log_file(self) -> Optional[str]:
        """Get log file path (None for console only)."""
        return self.config.get("logging", {}).get("file")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        current = self.config

        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default

        return current

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary with the API key masked."""
        data = copy.deepcopy(self.config)
        if data.get("apiKey"):
            data["apiKey"] = "***"
        return data

    def __repr__(self) -> str:
        return f"Config(base_url={self.get_base_url()!r}, timeout={self.get_timeout()})"
