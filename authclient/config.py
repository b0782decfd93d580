"""
Configuration Management for the session-aware HTTP client.

This module handles client configuration including the API URL, the auth
status contract and payload encoding, with support for configuration files
and environment variables.
"""

import os
import json
import logging
from typing import Optional, Dict, Any
from configparser import ConfigParser

from authshared.exceptions import ConfigurationError, ErrorCode
from authshared.models import PipelineSettings

logger = logging.getLogger(__name__)


class ClientConfiguration:
    """
    Configuration manager for the HTTP client.

    Supports configuration from:
    1. Overrides set at runtime (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    ENV_MAPPINGS = {
        'AUTHCLIENT_API_URL': ('server', 'url'),
        'AUTHCLIENT_TIMEOUT': ('server', 'timeout'),
        'AUTHCLIENT_ENCRYPTION': ('encryption', 'enabled'),
        'AUTHCLIENT_LOGIN_PATH': ('auth', 'login_path'),
        'AUTHCLIENT_REFRESH_PATH': ('auth', 'refresh_path'),
        'AUTHCLIENT_MAX_REFRESH_ATTEMPTS': ('auth', 'max_refresh_attempts'),
        'AUTHCLIENT_ENTRY_ROUTE': ('auth', 'entry_route'),
        'AUTHCLIENT_LOG_LEVEL': ('logging', 'level'),
        'AUTHCLIENT_LOG_FILE': ('logging', 'file'),
        'AUTHCLIENT_LOG_FORMAT': ('logging', 'format'),
    }

    DEFAULTS = {
        'server': {
            'url': 'http://localhost:3000',
            'timeout': 30.0,
        },
        'auth': {
            'login_path': '/user/login',
            'login_suffix': '/login',
            'refresh_path': '/user/refresh-token',
            'auth_expired_status': 401,
            'session_expired_status': 440,
            'max_refresh_attempts': 1,
            'entry_route': '/',
        },
        'encryption': {
            'enabled': False,
        },
        'ui': {
            'notice_duration': 2000,
        },
        'logging': {
            'level': 'INFO',
            'file': None,
            'format': 'standard',
        },
    }

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        self._config_file = config_file
        self._environ = environ if environ is not None else os.environ
        self._config_data: Dict[str, Dict[str, Any]] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration()

    def _load_configuration(self) -> None:
        """Load configuration from file and environment variables."""
        if self._config_file:
            if os.path.exists(self._config_file):
                self._load_from_file()
                logger.info(f"Configuration loaded from: {self._config_file}")
            else:
                logger.info(f"Configuration file not found: {self._config_file}")

        self._load_from_environment()
        self._set_defaults()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        try:
            config.read(self._config_file)
        except Exception as e:
            raise ConfigurationError(
                f"Cannot parse configuration file {self._config_file}: {e}",
                error_code=ErrorCode.CONFIG_INVALID_FORMAT,
                cause=e
            )

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                # Try to parse as JSON for numbers, booleans and null
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data.setdefault(section_name, {}).update(section_data)

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = self._environ.get(env_var)
            if value is None:
                continue

            section_data = self._config_data.setdefault(section, {})
            if value.lower() in ('true', 'false'):
                section_data[key] = value.lower() == 'true'
            elif value.isdigit():
                section_data[key] = int(value)
            else:
                section_data[key] = value

    def _set_defaults(self) -> None:
        """Merge defaults under any loaded values."""
        for section, section_defaults in self.DEFAULTS.items():
            section_data = self._config_data.setdefault(section, {})
            for key, default_value in section_defaults.items():
                section_data.setdefault(key, default_value)

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if key in self._overrides:
            return self._overrides[key]

        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        return self._config_data.get(section, {}).get(config_key, default)

    def set_config(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            value: Value to set
        """
        if '.' not in key:
            raise ConfigurationError(f"Configuration key must be 'section.key': {key}", config_key=key)

        section, config_key = key.split('.', 1)
        self._config_data.setdefault(section, {})[config_key] = value

    def set_override(self, key: str, value: Any) -> None:
        """
        Set configuration override (highest priority).

        Args:
            key: Configuration key in format 'section.key'
            value: Override value
        """
        self._overrides[key] = value

    def reload_configuration(self) -> None:
        """Reload configuration from file and environment."""
        self._config_data.clear()
        self._load_configuration()
        logger.info("Configuration reloaded")

    def _get_int(self, key: str) -> int:
        value = self.get_config(key)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid integer for {key}: {value!r}", config_key=key, cause=e)

    def _get_float(self, key: str) -> float:
        value = self.get_config(key)
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid number for {key}: {value!r}", config_key=key, cause=e)

    def _get_bool(self, key: str) -> bool:
        value = self.get_config(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ('true', '1', 'yes', 'on')
        return bool(value)

    # Convenience methods for common configuration values

    def get_server_url(self) -> str:
        """Get API server URL."""
        return str(self.get_config('server.url')).rstrip('/')

    def get_server_timeout(self) -> float:
        """Get server request timeout in seconds."""
        return self._get_float('server.timeout')

    def is_encryption_enabled(self) -> bool:
        """Check if request/response bodies are wrapped in the encoded envelope."""
        return self._get_bool('encryption.enabled')

    def get_login_path(self) -> str:
        return self.get_config('auth.login_path')

    def get_refresh_path(self) -> str:
        return self.get_config('auth.refresh_path')

    def get_max_refresh_attempts(self) -> int:
        return self._get_int('auth.max_refresh_attempts')

    def get_entry_route(self) -> str:
        return self.get_config('auth.entry_route')

    def get_notice_duration(self) -> int:
        """Get notice display duration in milliseconds."""
        return self._get_int('ui.notice_duration')

    def get_log_level(self) -> str:
        return str(self.get_config('logging.level', 'INFO')).upper()

    def get_log_file(self) -> Optional[str]:
        return self.get_config('logging.file')

    def get_log_format(self) -> str:
        return str(self.get_config('logging.format', 'standard')).lower()

    def get_pipeline_settings(self) -> PipelineSettings:
        """
        Build the interceptor pipeline settings.

        Raises:
            ConfigurationError: On invalid or inconsistent values
        """
        try:
            return PipelineSettings(
                encryption_enabled=self.is_encryption_enabled(),
                login_suffix=self.get_config('auth.login_suffix'),
                login_path=self.get_login_path(),
                refresh_path=self.get_refresh_path(),
                auth_expired_status=self._get_int('auth.auth_expired_status'),
                session_expired_status=self._get_int('auth.session_expired_status'),
                max_refresh_attempts=self.get_max_refresh_attempts(),
                entry_route=self.get_entry_route(),
                notice_duration_ms=self.get_notice_duration(),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid pipeline settings: {e}", cause=e)
