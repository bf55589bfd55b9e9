"""Tests for configuration loading and validation."""

from __future__ import annotations

import os

import pytest

from appguard.config import Config, ConfigLoader
from appguard.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(ConfigLoader.ENV_PREFIX):
            monkeypatch.delenv(key)


def test_defaults_are_valid():
    config = Config()
    assert config.validate() is True
    assert config.ai.enabled is False
    assert config.capabilities.rule_tables == ["malware", "tenancy"]
    assert config.capabilities.manifest_formats == ["composer", "npm"]


def test_yaml_file_with_nested_key(tmp_path):
    path = tmp_path / "appguard.yaml"
    path.write_text(
        "appguard:\n"
        "  scanner:\n"
        "    max_workers: 8\n"
        "  capabilities:\n"
        "    rule_tables: [malware]\n",
        encoding="utf-8",
    )
    config = ConfigLoader().load_config(config_file=str(path), env=False)
    assert config.scanner.max_workers == 8
    assert config.capabilities.rule_tables == ["malware"]
    assert config.scanner.file_timeout_s == 5.0


def test_toml_file(tmp_path):
    path = tmp_path / "appguard.toml"
    path.write_text('[ai]\nenabled = true\nmodel = "gpt-4o"\n', encoding="utf-8")
    config = ConfigLoader().load_config(config_file=str(path), env=False)
    assert config.ai.enabled is True
    assert config.ai.model == "gpt-4o"


def test_precedence_args_over_env_over_file(tmp_path, monkeypatch):
    path = tmp_path / "appguard.yaml"
    path.write_text("database:\n  url: sqlite:///file.db\nlogging:\n  level: WARNING\n", encoding="utf-8")
    monkeypatch.setenv("APPGUARD_DATABASE__URL", "sqlite:///env.db")
    monkeypatch.setenv("APPGUARD_SCANNER__FILE_TIMEOUT_S", "2.5")
    monkeypatch.setenv("APPGUARD_CAPABILITIES__MANIFEST_FORMATS", "npm")

    config = ConfigLoader().load_config(config_file=str(path), args={"db_url": "sqlite:///arg.db"})

    assert config.database.url == "sqlite:///arg.db"
    assert config.logging.level == "WARNING"
    assert config.scanner.file_timeout_s == 2.5
    assert config.capabilities.manifest_formats == ["npm"]


def test_env_boolean_coercion(monkeypatch):
    monkeypatch.setenv("APPGUARD_AI__ENABLED", "yes")
    monkeypatch.setenv("APPGUARD_CAPABILITIES__CONFIGURATION_AUDIT", "0")
    config = ConfigLoader().load_config()
    assert config.ai.enabled is True
    assert config.capabilities.configuration_audit is False


def test_none_args_do_not_override(monkeypatch):
    monkeypatch.setenv("APPGUARD_LOGGING__LEVEL", "DEBUG")
    config = ConfigLoader().load_config(args={"log_level": None, "ai_enabled": None})
    assert config.logging.level == "DEBUG"
    assert config.ai.enabled is False


@pytest.mark.parametrize(
    "yaml_text",
    [
        "scanner:\n  max_workers: 0\n",
        "capabilities:\n  rule_tables: [malware, yara]\n",
        "capabilities:\n  manifest_formats: [pip]\n",
        "logging:\n  level: LOUD\n",
        "database:\n  url: not-a-url\n",
    ],
)
def test_invalid_values_raise(tmp_path, yaml_text):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml_text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigLoader().load_config(config_file=str(path), env=False)


def test_unknown_option_raises(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("scanner:\n  turbo: true\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Unknown option"):
        ConfigLoader().load_config(config_file=str(path), env=False)


def test_missing_and_unsupported_files(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigLoader().load_config(config_file=str(tmp_path / "missing.yaml"), env=False)
    ini = tmp_path / "appguard.ini"
    ini.write_text("[scanner]\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Unsupported"):
        ConfigLoader().load_config(config_file=str(ini), env=False)
