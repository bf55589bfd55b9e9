# Copyright (c) 2025 Anush Krishna
# Licensed under the MIT License. See LICENSE file in the project root.

"""Configuration schema definitions.

This module defines the configuration structure, default values and
validation logic for all scanner settings. Each section is a dataclass with
a ``validate()`` method returning a list of error messages.

Classes
-------
Config : Main configuration class
ScannerConfig : Extraction and rule-scanner limits
AiConfig : AI text-completion settings
AnalyzerCapabilities : Active manifest formats and rule tables
DatabaseConfig : Database configuration
LoggingConfig : Logging configuration

Examples
--------
>>> config = Config()
>>> config.scanner.max_workers
4
>>> config.validate()
True

See Also
--------
appguard.config.config_loader : Configuration loading
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


KNOWN_MANIFEST_FORMATS = ("composer", "npm")
KNOWN_RULE_TABLES = ("malware", "tenancy")


@dataclass
class ScannerConfig:
    """Limits for extraction and the rule-based scanners."""

    max_workers: int = 4
    file_timeout_s: float = 5.0
    max_file_bytes: int = 1024 * 1024  # 1 MB
    max_extract_bytes: int = 200 * 1024 * 1024  # 200 MB
    work_dir: str = "storage/temp_scans"

    def validate(self) -> List[str]:
        """
        Validate scanner configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if self.max_workers < 1:
            errors.append(f"scanner.max_workers must be >= 1, got {self.max_workers}")
        if self.file_timeout_s <= 0:
            errors.append(f"scanner.file_timeout_s must be > 0, got {self.file_timeout_s}")
        if self.max_file_bytes < 1:
            errors.append(f"scanner.max_file_bytes must be >= 1, got {self.max_file_bytes}")
        if self.max_extract_bytes < self.max_file_bytes:
            errors.append("scanner.max_extract_bytes must be >= scanner.max_file_bytes")
        if not self.work_dir:
            errors.append("scanner.work_dir must not be empty")

        return errors


@dataclass
class AiConfig:
    """Settings for the external text-completion service."""

    enabled: bool = False
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4"
    api_key: Optional[str] = None
    max_tokens: int = 2000
    timeout_s: float = 30.0
    narrative_timeout_s: float = 60.0
    max_workers: int = 2
    content_budget: int = 4000
    max_files: int = 25

    def validate(self) -> List[str]:
        errors = []

        if self.enabled and not self.endpoint:
            errors.append("ai.endpoint is required when ai.enabled is true")
        if self.max_tokens < 1:
            errors.append(f"ai.max_tokens must be >= 1, got {self.max_tokens}")
        if self.timeout_s <= 0 or self.narrative_timeout_s <= 0:
            errors.append("ai timeouts must be > 0")
        if self.max_workers < 1:
            errors.append(f"ai.max_workers must be >= 1, got {self.max_workers}")
        if self.content_budget < 1:
            errors.append(f"ai.content_budget must be >= 1, got {self.content_budget}")
        if self.max_files < 0:
            errors.append(f"ai.max_files must be >= 0, got {self.max_files}")

        return errors


@dataclass
class AnalyzerCapabilities:
    """
    Which optional analyzers are switched on.

    Injected at startup instead of probing for integrations at runtime.
    """

    manifest_formats: List[str] = field(default_factory=lambda: list(KNOWN_MANIFEST_FORMATS))
    rule_tables: List[str] = field(default_factory=lambda: list(KNOWN_RULE_TABLES))
    configuration_audit: bool = True

    def validate(self) -> List[str]:
        errors = []

        for fmt in self.manifest_formats:
            if fmt not in KNOWN_MANIFEST_FORMATS:
                errors.append(f"Unknown manifest format: {fmt}")
        for table in self.rule_tables:
            if table not in KNOWN_RULE_TABLES:
                errors.append(f"Unknown rule table: {table}")

        return errors


@dataclass
class DatabaseConfig:
    """Configuration for database operations."""

    url: str = "sqlite:///storage/appguard.db"
    echo: bool = False

    def validate(self) -> List[str]:
        errors = []

        if "://" not in self.url:
            errors.append(f"Invalid database url: {self.url}")

        return errors


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    file: str = "appguard.log"
    dir: str = "logs"
    console: bool = True
    file_output: bool = False
    max_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5

    def validate(self) -> List[str]:
        """
        Validate logging configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            errors.append(f"Invalid log level: {self.level}")

        if self.max_bytes < 1024:
            errors.append(f"max_bytes too small: {self.max_bytes}")

        if self.backup_count < 0:
            errors.append(f"backup_count must be >= 0, got {self.backup_count}")

        return errors


@dataclass
class Config:
    """
    Main configuration class for AppGuard.

    This class aggregates all configuration sections and provides
    validation and conversion helpers.
    """

    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    ai: AiConfig = field(default_factory=AiConfig)
    capabilities: AnalyzerCapabilities = field(default_factory=AnalyzerCapabilities)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> bool:
        """
        Validate entire configuration.

        Returns:
            True if valid, raises ConfigurationError if invalid

        Raises:
            ConfigurationError: If any validation fails
        """
        from appguard.core.exceptions import ConfigurationError

        all_errors = []
        all_errors.extend(self.scanner.validate())
        all_errors.extend(self.ai.validate())
        all_errors.extend(self.capabilities.validate())
        all_errors.extend(self.database.validate())
        all_errors.extend(self.logging.validate())

        if all_errors:
            error_msg = "\n".join(f"  - {err}" for err in all_errors)
            raise ConfigurationError(
                "configuration",
                f"Configuration validation failed:\n{error_msg}",
                {"errors": all_errors}
            )

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'Config':
        """
        Create configuration from dictionary.

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Config instance
        """
        return cls(
            scanner=ScannerConfig(**config_dict.get("scanner", {})),
            ai=AiConfig(**config_dict.get("ai", {})),
            capabilities=AnalyzerCapabilities(**config_dict.get("capabilities", {})),
            database=DatabaseConfig(**config_dict.get("database", {})),
            logging=LoggingConfig(**config_dict.get("logging", {})),
        )


def get_default_config() -> Config:
    """
    Get default configuration.

    Returns:
        Config instance with default values
    """
    return Config()
