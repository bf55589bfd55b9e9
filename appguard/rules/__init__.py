"""Versioned, data-driven rule tables.

Every detection and policy table used by the scanner lives as a YAML file
next to this module and carries a ``version`` key. Tables are validated into
pydantic models and their regular expressions compiled once, at load time.
A broken table raises :class:`~appguard.core.exceptions.RuleTableError`.

Functions
---------
load_pattern_table : Malware / tenancy signature tables
load_dependency_table : Curated vulnerable version ranges
load_allowlist : False-positive policy
load_recommendations : Remediation guidance templates
load_permission_policy : Dangerous permission sets
rule_table_versions : Version of every shipped table

Examples
--------
>>> table = load_pattern_table("malware")
>>> table.type
'malware_pattern'
"""
from __future__ import annotations

import re
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, List, Optional, Pattern, Type, TypeVar

import yaml
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from pydantic import BaseModel, Field, PrivateAttr, ValidationError, model_validator

from appguard.core.exceptions import RuleTableError
from appguard.core.models.schema import Severity

T = TypeVar("T", bound=BaseModel)

TABLE_NAMES = ("malware", "tenancy", "dependencies", "allowlist", "recommendations", "permissions")


def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


class PatternRule(BaseModel):
    id: str
    pattern: str
    description: str
    remediation: Optional[str] = None

    _regex: Pattern[str] = PrivateAttr()

    @model_validator(mode="after")
    def _compile_pattern(self):
        self._regex = _compile(self.pattern)
        return self

    @property
    def regex(self) -> Pattern[str]:
        return self._regex


class PatternTable(BaseModel):
    version: str
    type: str
    severity: Severity = Severity.HIGH
    rules: List[PatternRule]


class VulnerableRange(BaseModel):
    package: str
    ranges: List[str] = Field(min_length=1)

    _specifiers: List[SpecifierSet] = PrivateAttr(default_factory=list)

    @model_validator(mode="after")
    def _parse_ranges(self):
        self._specifiers = [SpecifierSet(r) for r in self.ranges]
        return self

    def matching_range(self, version) -> Optional[str]:
        """Return the first range ``version`` falls in, or None."""
        for text, spec in zip(self.ranges, self._specifiers):
            if spec.contains(version, prereleases=True):
                return text
        return None


class DependencyTable(BaseModel):
    version: str
    type: str = "vulnerable_dependency"
    severity: Severity = Severity.MEDIUM
    ecosystems: Dict[str, List[VulnerableRange]]

    def lookup(self, ecosystem: str, package: str) -> Optional[VulnerableRange]:
        for entry in self.ecosystems.get(ecosystem, []):
            if entry.package.lower() == package.lower():
                return entry
        return None


class AllowlistPolicy(BaseModel):
    """False-positive policy: what the filter is allowed to drop."""

    version: str
    tenant_idioms: List[str] = Field(default_factory=list)
    framework_safe_types: List[str] = Field(default_factory=list)
    module_suppressed_types: List[str] = Field(default_factory=list)
    module_package_types: List[str] = Field(default_factory=list)

    _idioms: List[Pattern[str]] = PrivateAttr(default_factory=list)

    @model_validator(mode="after")
    def _compile_idioms(self):
        self._idioms = [_compile(p) for p in self.tenant_idioms]
        return self

    def matches_idiom(self, snippet: Optional[str]) -> bool:
        if not snippet:
            return False
        return any(regex.search(snippet) for regex in self._idioms)


class RecommendationTable(BaseModel):
    version: str
    baseline: List[str] = Field(default_factory=list)
    installed_packages: str = "Consider compatibility with existing apps: {names}"
    tiers: Dict[str, str] = Field(default_factory=dict)
    by_type: Dict[str, str] = Field(default_factory=dict)


class PermissionPolicy(BaseModel):
    version: str
    dangerous: List[str]
    critical: List[str] = Field(default_factory=list)
    low_tiers: List[str] = Field(default_factory=list)
    many_dangerous: int = 3
    low_tier_many_dangerous: int = 2
    recommendations: Dict[str, str] = Field(default_factory=dict)
    iframe_sandbox: str = ""


def _read_yaml(name: str) -> Dict[str, Any]:
    resource = resources.files(__name__).joinpath(f"{name}.yaml")
    try:
        payload = yaml.safe_load(resource.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise RuleTableError(name, "table file is missing") from e
    except yaml.YAMLError as e:
        raise RuleTableError(name, f"YAML parse error: {e}") from e
    if not isinstance(payload, dict):
        raise RuleTableError(name, "top-level YAML value must be a mapping")
    if "version" not in payload:
        raise RuleTableError(name, "missing 'version' key")
    return payload


def parse_table(name: str, model_cls: Type[T], payload: Dict[str, Any]) -> T:
    """Validate ``payload`` into ``model_cls``, wrapping any error in RuleTableError."""
    try:
        return model_cls.model_validate(payload)
    except ValidationError as e:
        raise RuleTableError(name, str(e)) from e
    except (re.error, InvalidSpecifier) as e:
        raise RuleTableError(name, f"invalid pattern: {e}") from e


@lru_cache(maxsize=None)
def load_pattern_table(name: str) -> PatternTable:
    return parse_table(name, PatternTable, _read_yaml(name))


@lru_cache(maxsize=1)
def load_dependency_table() -> DependencyTable:
    return parse_table("dependencies", DependencyTable, _read_yaml("dependencies"))


@lru_cache(maxsize=1)
def load_allowlist() -> AllowlistPolicy:
    return parse_table("allowlist", AllowlistPolicy, _read_yaml("allowlist"))


@lru_cache(maxsize=1)
def load_recommendations() -> RecommendationTable:
    return parse_table("recommendations", RecommendationTable, _read_yaml("recommendations"))


@lru_cache(maxsize=1)
def load_permission_policy() -> PermissionPolicy:
    return parse_table("permissions", PermissionPolicy, _read_yaml("permissions"))


def rule_table_versions() -> Dict[str, str]:
    """Return ``{table name: version}`` for every shipped table."""
    return {name: str(_read_yaml(name)["version"]) for name in TABLE_NAMES}


__all__ = [
    "TABLE_NAMES",
    "PatternRule",
    "PatternTable",
    "VulnerableRange",
    "DependencyTable",
    "AllowlistPolicy",
    "RecommendationTable",
    "PermissionPolicy",
    "parse_table",
    "load_pattern_table",
    "load_dependency_table",
    "load_allowlist",
    "load_recommendations",
    "load_permission_policy",
    "rule_table_versions",
]
