"""Configuration management - loads settings.yaml and environment variables."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from freelance_plans.models.settings import AppSettings, PlanDefinition


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Config:
    """Application configuration loader and manager.

    Loads settings.yaml and provides validated access to:
    - Database connection settings
    - JWT issuance settings
    - Seed plan catalog
    - Service settings (expiry sweep interval)

    DATABASE_URL and JWT_SECRET environment variables override the file.
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to settings.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/settings.yaml
        """
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[AppSettings] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/settings.yaml")

    def _load_config(self) -> None:
        """Load, apply environment overrides, and validate settings.yaml."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/settings.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")
        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {self._config_path}")

        self._apply_env_overrides(raw_config)

        try:
            self._settings = AppSettings(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @staticmethod
    def _apply_env_overrides(raw_config: dict) -> None:
        database_url = os.getenv("DATABASE_URL")
        if database_url:
            raw_config.setdefault("database", {})["url"] = database_url

        jwt_secret = os.getenv("JWT_SECRET")
        if jwt_secret:
            raw_config.setdefault("auth", {})["jwt_secret"] = jwt_secret

    @property
    def settings(self) -> AppSettings:
        """Get validated settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path

    @property
    def database(self):
        """Get database settings."""
        return self.settings.database

    @property
    def auth(self):
        """Get JWT issuance settings."""
        return self.settings.auth

    @property
    def service(self):
        """Get service behavior settings."""
        return self.settings.service

    @property
    def seed_plans(self) -> list[PlanDefinition]:
        """Get plans that seed an empty catalog."""
        return self.settings.plans

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reset_config() -> None:
    """Drop the global configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
