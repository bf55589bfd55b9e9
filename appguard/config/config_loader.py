# Copyright (c) 2025 Anush Krishna
# Licensed under the MIT License. See LICENSE file in the project root.

"""Configuration loader for AppGuard.

This module handles loading configuration from multiple sources with
well-defined precedence rules.

Configuration Sources
---------------------
The loader supports multiple configuration sources with the following priority
order (highest to lowest):

1. Command-line arguments (highest priority)
2. Environment variables (prefixed with APPGUARD_), including a ``.env`` file
3. Configuration file (YAML or TOML)
4. Default values (lowest priority)

Environment Variables
---------------------
All environment variables must be prefixed with `APPGUARD_`. For nested
configuration, use double underscores: `APPGUARD_DATABASE__URL`. List
options take comma separated values: `APPGUARD_CAPABILITIES__RULE_TABLES=malware`

Examples
--------
Load with environment variable override:
    >>> import os
    >>> os.environ['APPGUARD_AI__ENABLED'] = 'true'
    >>> config = ConfigLoader().load_config('appguard.yaml')
    >>> config.ai.enabled
    True

See Also
--------
config_schema : Configuration schema definitions
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
try:
    import tomllib
except ImportError:
    import tomli as tomllib

from .config_schema import Config
from appguard.core.exceptions import ConfigurationError


class ConfigLoader:
    """Configuration loader that supports multiple sources.

    Attributes
    ----------
    ENV_PREFIX : str
        Prefix for environment variables ('APPGUARD_').
    config : Config
        Internal configuration object.

    Notes
    -----
    The loader validates the merged configuration at the end of
    ``load_config``. Invalid configurations raise ConfigurationError.
    """

    ENV_PREFIX = "APPGUARD_"

    def __init__(self):
        """Initialize configuration loader with default config."""
        self.config = Config()

    def load_from_file(self, file_path: str) -> Config:
        """
        Load configuration from a file.

        Supports YAML and TOML formats based on file extension.

        Args:
            file_path: Path to configuration file

        Returns:
            Config instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        path = Path(file_path)

        if not path.exists():
            raise ConfigurationError(
                "file_path",
                f"Configuration file not found: {file_path}"
            )

        try:
            if path.suffix in ['.yaml', '.yml']:
                with open(path, 'r', encoding='utf-8') as f:
                    config_dict = yaml.safe_load(f) or {}
            elif path.suffix == '.toml':
                with open(path, 'rb') as f:
                    config_dict = tomllib.load(f)
            else:
                raise ConfigurationError(
                    "file_format",
                    f"Unsupported configuration file format: {path.suffix}"
                )
        except yaml.YAMLError as e:
            raise ConfigurationError(
                "yaml_parse",
                f"Failed to parse YAML configuration: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(
                "toml_parse",
                f"Failed to parse TOML configuration: {e}"
            ) from e

        # Handle nested 'appguard' key if present
        if 'appguard' in config_dict:
            config_dict = config_dict['appguard']

        try:
            self.config = Config.from_dict(config_dict)
        except TypeError as e:
            raise ConfigurationError(
                "file_load",
                f"Unknown option in configuration file: {e}"
            ) from e
        return self.config

    def load_from_env(self) -> Config:
        """
        Load configuration from environment variables.

        Example:
            APPGUARD_SCANNER__MAX_WORKERS=8
            APPGUARD_AI__ENABLED=true
            APPGUARD_DATABASE__URL=postgresql://scanner@db/appguard

        Returns:
            Config instance with values from environment
        """
        env_config: Dict[str, Dict[str, Any]] = {}

        for key, value in os.environ.items():
            if key.startswith(self.ENV_PREFIX):
                config_key = key[len(self.ENV_PREFIX):].lower()
                parts = config_key.split('__')

                if len(parts) == 2:
                    section, option = parts
                    env_config.setdefault(section, {})[option] = value

        if env_config:
            self._merge_config(env_config)

        return self.config

    def load_from_args(self, args: Dict[str, Any]) -> Config:
        """
        Load configuration from command-line arguments.

        Args:
            args: Dictionary of argument names and values

        Returns:
            Config instance with values from arguments
        """
        if not args:
            return self.config

        # Map command-line args to config structure
        arg_mapping = {
            'log_level': ('logging', 'level'),
            'log_file': ('logging', 'file'),
            'db_url': ('database', 'url'),
            'max_workers': ('scanner', 'max_workers'),
            'file_timeout': ('scanner', 'file_timeout_s'),
            'work_dir': ('scanner', 'work_dir'),
            'ai_enabled': ('ai', 'enabled'),
            'ai_endpoint': ('ai', 'endpoint'),
            'ai_model': ('ai', 'model'),
            'ai_timeout': ('ai', 'timeout_s'),
            'rule_tables': ('capabilities', 'rule_tables'),
            'manifest_formats': ('capabilities', 'manifest_formats'),
        }

        for arg_name, value in args.items():
            if value is not None and arg_name in arg_mapping:
                section, option = arg_mapping[arg_name]
                self._set_config_value(section, option, value)

        return self.config

    def load_config(
        self,
        config_file: Optional[str] = None,
        env: bool = True,
        args: Optional[Dict[str, Any]] = None,
        dotenv_path: Optional[str] = None,
    ) -> Config:
        """
        Load configuration from multiple sources.

        Priority order (highest to lowest):
        1. Command-line arguments
        2. Environment variables
        3. Configuration file
        4. Default values

        Args:
            config_file: Path to configuration file (optional)
            env: Whether to load from environment variables
            args: Command-line arguments dictionary (optional)
            dotenv_path: Explicit ``.env`` file; defaults to a search from cwd

        Returns:
            Validated Config instance

        Raises:
            ConfigurationError: If configuration is invalid
        """
        self.config = Config()

        if config_file:
            self.load_from_file(config_file)

        if env:
            load_dotenv(dotenv_path, override=False)
            self.load_from_env()

        if args:
            self.load_from_args(args)

        self.config.validate()

        return self.config

    def _merge_config(self, partial_config: Dict[str, Any]):
        """
        Merge partial configuration into existing config.

        Args:
            partial_config: Dictionary with partial configuration
        """
        for section, values in partial_config.items():
            for key, value in values.items():
                self._set_config_value(section, key, value)

    def _set_config_value(self, section: str, option: str, value: Any):
        """
        Set a single configuration value, coerced to the option's type.

        Args:
            section: Configuration section name
            option: Option name within section
            value: Value to set
        """
        if hasattr(self.config, section):
            section_obj = getattr(self.config, section)
            if hasattr(section_obj, option):
                current = getattr(section_obj, option)
                setattr(section_obj, option, self._coerce(current, value))

    @classmethod
    def _coerce(cls, current: Any, value: Any) -> Any:
        if not isinstance(value, str):
            if isinstance(current, list) and isinstance(value, (tuple, set)):
                return list(value)
            return value
        if isinstance(current, list):
            return [item.strip() for item in value.split(',') if item.strip()]
        if isinstance(current, bool):
            return value.strip().lower() in ('true', '1', 'yes', 'on')
        return cls._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """
        Parse string value to appropriate type.

        Args:
            value: String value from environment variable

        Returns:
            Parsed value (bool, int, float, or str)
        """
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value


def load_config(
    config_file: Optional[str] = None,
    env: bool = True,
    args: Optional[Dict[str, Any]] = None
) -> Config:
    """
    Convenience function to load configuration.

    Args:
        config_file: Path to configuration file (optional)
        env: Whether to load from environment variables
        args: Command-line arguments dictionary (optional)

    Returns:
        Validated Config instance
    """
    loader = ConfigLoader()
    return loader.load_config(config_file=config_file, env=env, args=args)
