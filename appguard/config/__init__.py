# Copyright (c) 2025 Anush Krishna
# Licensed under the MIT License. See LICENSE file in the project root.

"""Configuration management for AppGuard.

This package handles configuration loading from files, environment
variables (and ``.env``), command-line arguments and defaults.

Modules
-------
config_loader : Configuration loading utilities
config_schema : Configuration data models

Examples
--------
>>> from appguard.config import ConfigLoader
>>> config = ConfigLoader().load_config("appguard.yaml")
"""

from .config_schema import (
    Config,
    ScannerConfig,
    AiConfig,
    AnalyzerCapabilities,
    DatabaseConfig,
    LoggingConfig,
    get_default_config,
)
from .config_loader import ConfigLoader, load_config

__all__ = [
    'Config',
    'ScannerConfig',
    'AiConfig',
    'AnalyzerCapabilities',
    'DatabaseConfig',
    'LoggingConfig',
    'get_default_config',
    'ConfigLoader',
    'load_config',
]
