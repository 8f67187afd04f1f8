"""
Configuration management for Job Autopilot.
"""

from pathlib import Path
from typing import Optional
import copy
import json
import os

from job_autopilot.errors import ConfigError


class Config:
    """Manages application configuration and secrets."""

    DEFAULT_CONFIG = {
        "database": {
            "path": "~/.job_autopilot/autopilot.db",
        },
        "profiles": {
            "directory": "~/.job_autopilot/profiles",
        },
        "scraping": {
            "boards": ["linkedin", "indeed", "glassdoor"],
            "max_results": 40,
            "request_delay": [2.0, 7.0],
            "use_sample_fallback": False,
            "schedule_every_minutes": 45,
            "default_searches": [
                {"query": "Software Engineer", "location": "Remote"},
                {"query": "Product Manager", "location": "Remote"},
                {"query": "Data Scientist", "location": "New York, NY"},
                {"query": "DevOps Engineer", "location": "Austin, TX"},
            ],
        },
        "queues": {
            "attempts": 3,
            "backoff_ms": 5000,
            "remove_on_complete": 1000,
            "poll_interval": 1.0,
            "lease_seconds": 60,
            "concurrency": {
                "scraping": 2,
                "applications": 3,
                "notifications": 5,
            },
        },
        "matching": {
            "threshold": 0.7,
            "search_threshold": 0.6,
        },
        "submission": {
            "latency_seconds": 1.5,
        },
        "notifications": {
            "channels": ["log"],
            "email_to": "",
            "smtp": {
                "host": "",
                "port": 587,
                "username": "",
                "sender": "notifications@job-autopilot.local",
                "use_tls": True,
            },
        },
        "api": {
            "host": "127.0.0.1",
            "port": 8000,
            "scrape_rate_limit": 10,
            "scrape_rate_window_seconds": 60,
        },
        "secrets": {
            "scraper_proxy_rotation_secret": "",
            "captcha_api_key": "",
            "slack_webhook_url": "",
            "smtp_password": "",
        },
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config file (default: ~/.job_autopilot/config.json)
        """
        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = Path.home() / ".job_autopilot" / "config.json"

        self.config = self._load_config()

    def _load_config(self) -> dict:
        """Load configuration from file or fall back to defaults."""
        defaults = copy.deepcopy(self.DEFAULT_CONFIG)
        if not self.config_path.exists():
            return defaults

        try:
            with open(self.config_path, 'r') as f:
                user_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid config file {self.config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigError(f"Config file {self.config_path} must contain a JSON object")

        return self._deep_merge(defaults, user_config)

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def save(self) -> None:
        """Save current configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, 'w') as f:
            json.dump(self.config, f, indent=2)

    def get(self, key: str, default=None):
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "queues.concurrency.scraping")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self.config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value) -> None:
        """
        Set a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "matching.threshold")
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def get_secret(self, name: str) -> str:
        """
        Get a secret such as "captcha_api_key".

        Environment variables (the upper-cased name, e.g. CAPTCHA_API_KEY)
        take precedence over the config file.
        """
        env_value = os.environ.get(name.upper())
        if env_value:
            return env_value

        return self.get(f"secrets.{name}", "") or ""

    def set_secret(self, name: str, value: str) -> None:
        self.set(f"secrets.{name}", value)
        self.save()

    def get_smtp_settings(self) -> dict:
        """SMTP settings with SMTP_HOST / SMTP_PORT / SMTP_USERNAME / SMTP_PASSWORD overrides."""
        smtp = dict(self.get("notifications.smtp", {}))
        for field in ("host", "port", "username", "sender"):
            env_value = os.environ.get(f"SMTP_{field.upper()}")
            if env_value:
                smtp[field] = int(env_value) if field == "port" else env_value
        smtp["password"] = self.get_secret("smtp_password")
        return smtp

    def get_database_path(self) -> str:
        return str(Path(self.get("database.path")).expanduser())

    def get_profiles_dir(self) -> str:
        return str(Path(self.get("profiles.directory")).expanduser())

    def print_config(self) -> None:
        """Print current configuration (with secrets masked)."""
        print(json.dumps(self.masked(), indent=2))

    def masked(self) -> dict:
        return self._mask_sensitive(self.config)

    def _mask_sensitive(self, data: dict, sensitive_keys: set = None) -> dict:
        """Mask sensitive values in configuration."""
        if sensitive_keys is None:
            sensitive_keys = {"api_key", "secret", "password", "token", "webhook"}

        result = {}
        for key, value in data.items():
            if isinstance(value, dict):
                if key == "secrets":
                    result[key] = {name: self._mask_value(item) for name, item in value.items()}
                else:
                    result[key] = self._mask_sensitive(value, sensitive_keys)
            elif any(s in key.lower() for s in sensitive_keys):
                result[key] = self._mask_value(value)
            else:
                result[key] = value
        return result

    @staticmethod
    def _mask_value(value) -> str:
        if not value:
            return "(not set)"
        value = str(value)
        return f"{value[:4]}...{value[-4:]}" if len(value) > 8 else "****"

    @classmethod
    def create_default_config(cls, path: str = None) -> 'Config':
        """Create a new config file with default values."""
        config = cls(path)
        config.save()
        return config
