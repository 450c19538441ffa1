#!/usr/bin/env python3
"""
Centralized Configuration Manager

Provides a single source of truth for application configuration,
including environment variables, defaults, and validation.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Mapping

from .env_loader import load_env_file
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "GroupFeeder/1.0"
DEFAULT_ACCEPT_HEADER = (
    "application/xml, text/xml, application/rss+xml, application/atom+xml, "
    "application/feed+json, application/json"
)


@dataclass
class DatabaseConfig:
    """Database connection configuration."""
    database_url: Optional[str] = None
    connection_timeout: int = 30


@dataclass
class FetchConfig:
    """Feed polling configuration."""
    user_agent: str = DEFAULT_USER_AGENT
    accept_header: str = DEFAULT_ACCEPT_HEADER
    feed_timeout_seconds: float = 30.0
    wave_size: int = 5
    refresh_interval_minutes: int = 15
    content_hash_length: int = 16
    allow_private_hosts: bool = False


@dataclass
class ApplicationConfig:
    """Core application configuration."""
    log_level: str = "INFO"
    verbose_logging: bool = False


@dataclass
class Config:
    """Master configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    app: ApplicationConfig = field(default_factory=ApplicationConfig)

    environment: str = field(default_factory=lambda: os.getenv('ENVIRONMENT', 'development'))

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ['dev', 'development', 'local']

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() in ['prod', 'production']

    def has_database(self) -> bool:
        return bool(self.database.database_url)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class ConfigManager:
    """Manages application configuration with validation and environment loading."""

    def __init__(self, env_file_path: str = ".env", environ: Optional[Mapping[str, str]] = None):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Path to .env file relative to project root
            environ: Mapping to read settings from (defaults to os.environ)
        """
        self._config: Optional[Config] = None
        self._environ = environ
        if environ is None:
            load_env_file(env_file_path)

    def _env(self, key: str, default: Optional[str] = None) -> Optional[str]:
        source = os.environ if self._environ is None else self._environ
        value = source.get(key)
        if value is None or value == '':
            return default
        return value

    def get_config(self, force_reload: bool = False) -> Config:
        """
        Get application configuration.

        Args:
            force_reload: Force reloading configuration from environment

        Returns:
            Complete configuration object
        """
        if self._config is None or force_reload:
            self._config = self._build_config()
        return self._config

    def _build_config(self) -> Config:
        """Build configuration from environment variables."""
        try:
            database_config = DatabaseConfig(
                database_url=self._env('DATABASE_URL'),
                connection_timeout=int(self._env('DB_CONNECTION_TIMEOUT', '30'))
            )

            fetch_config = FetchConfig(
                user_agent=self._env('FEED_USER_AGENT', DEFAULT_USER_AGENT),
                feed_timeout_seconds=float(self._env('FEED_TIMEOUT', '30')),
                wave_size=int(self._env('FEED_WAVE_SIZE', '5')),
                refresh_interval_minutes=int(self._env('FEED_REFRESH_MINUTES', '15')),
                content_hash_length=int(self._env('CONTENT_HASH_LENGTH', '16')),
                allow_private_hosts=_parse_bool(self._env('ALLOW_PRIVATE_FEED_HOSTS', 'false'))
            )

            app_config = ApplicationConfig(
                log_level=self._env('LOG_LEVEL', 'INFO').upper(),
                verbose_logging=_parse_bool(self._env('VERBOSE_LOGGING', 'false'))
            )
        except ValueError as e:
            raise ConfigurationError('environment', f"invalid numeric value ({e})")

        config = Config(
            database=database_config,
            fetch=fetch_config,
            app=app_config,
            environment=self._env('ENVIRONMENT', 'development')
        )

        self._validate_config(config)
        return config

    def _validate_config(self, config: Config) -> None:
        """Validate configuration values."""
        errors = []

        url = config.database.database_url
        if url and not url.startswith(('postgres://', 'postgresql://')):
            errors.append("DATABASE_URL must be a postgresql:// connection string")

        if config.fetch.feed_timeout_seconds <= 0:
            errors.append("FEED_TIMEOUT must be positive")

        if config.fetch.wave_size < 1 or config.fetch.wave_size > 50:
            errors.append("FEED_WAVE_SIZE must be between 1 and 50")

        if config.fetch.refresh_interval_minutes < 0:
            errors.append("FEED_REFRESH_MINUTES must not be negative")

        if config.fetch.content_hash_length < 8 or config.fetch.content_hash_length > 64:
            errors.append("CONTENT_HASH_LENGTH must be between 8 and 64")

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if config.app.log_level not in valid_log_levels:
            errors.append(f"LOG_LEVEL must be one of: {', '.join(valid_log_levels)}")

        if errors:
            raise ConfigurationError('environment', '; '.join(errors))

        logger.debug("Configuration validation passed")

    def update_logging(self) -> None:
        """Configure logging based on current configuration."""
        config = self.get_config()

        numeric_level = getattr(logging, config.app.log_level)
        logging.getLogger().setLevel(numeric_level)

        if config.app.verbose_logging:
            format_str = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        else:
            format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        for handler in logging.getLogger().handlers:
            handler.setLevel(numeric_level)
            handler.setFormatter(logging.Formatter(format_str, datefmt='%Y-%m-%d %H:%M:%S'))

    def describe(self) -> Dict[str, Any]:
        """Non-secret view of the active configuration."""
        config = self.get_config()
        return {
            'environment': config.environment,
            'database_configured': config.has_database(),
            'user_agent': config.fetch.user_agent,
            'feed_timeout_seconds': config.fetch.feed_timeout_seconds,
            'wave_size': config.fetch.wave_size,
            'refresh_interval_minutes': config.fetch.refresh_interval_minutes,
            'log_level': config.app.log_level
        }
