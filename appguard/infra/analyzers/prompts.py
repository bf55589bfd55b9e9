"""Prompt templates for the AI semantic analyzer.

Per-file prompts spell out the platform's tenant isolation and the
tenant-scoping idioms that must not be reported, then ask for a JSON
object ``{"vulnerabilities": [...], "recommendations": [...]}``. The
package-level prompt asks for a free-text assessment.
"""
from __future__ import annotations

from typing import List, Sequence

from appguard.core.models.schema import Package, ScanContext

LEGITIMATE_PATTERNS: List[str] = [
    "tenant('id') - Getting current tenant ID",
    "Storage::disk('tenant') - Using tenant storage disk",
    "->where('tenant_id', tenant('id')) - Tenant scoping",
    "cache()->tags(['tenant:'.tenant('id')]) - Tenant cache tags",
    "Model::tenantScoped() - Tenant-aware model scoping",
    "tenancy()->initialized - Checking tenant context",
]

SECURITY_CONCERNS: List[str] = [
    "Direct central database access bypassing tenant isolation",
    "Cross-tenant data access attempts",
    "Raw SQL without tenant scoping",
    "File operations outside tenant boundaries",
    "Cache operations without tenant isolation",
    "Hardcoded credentials or secrets",
    "Unvalidated user input leading to XSS/SQLi",
    "Command injection or code execution vulnerabilities",
]

RESPONSE_FORMAT = """{
    "vulnerabilities": [
        {
            "type": "vulnerability_type",
            "severity": "low|medium|high|critical",
            "description": "detailed description with tenant context",
            "line": "line_number",
            "code_snippet": "vulnerable code",
            "tenant_impact": "how this affects tenant isolation"
        }
    ],
    "recommendations": ["tenant-aware recommendation1", "recommendation2"]
}"""


def _bullets(items: Sequence[str], marker: str = "-") -> str:
    return "\n".join(f"{marker} {item}" for item in items)


def installed_summary(context: ScanContext) -> str:
    if not context.installed_packages:
        return ""
    lines = [f"{p.name} ({p.type})" for p in context.installed_packages]
    return "Existing apps in tenant environment:\n" + _bullets(lines)


def build_file_prompt(code: str, relpath: str, context: ScanContext, budget: int) -> str:
    """Prompt for one source file; ``code`` is cut to ``budget`` characters."""
    sections = [
        "Analyze this code file for security vulnerabilities in a MULTI-TENANT application.",
        f"File: {relpath}",
        "CRITICAL CONTEXT - MULTI-TENANT ARCHITECTURE:\n" + _bullets(context.isolation.describe()),
        "TENANT CONTEXT:\n"
        + _bullets(
            [
                f"Tenant ID: {context.tenant_id or 'none'}",
                f"Tenancy architecture: {context.isolation.name}",
                f"Platform version: {context.platform_version}",
            ]
        ),
    ]
    installed = installed_summary(context)
    if installed:
        sections.append(installed)
    sections += [
        "LEGITIMATE PATTERNS (DO NOT FLAG AS VULNERABILITIES):\n" + _bullets(LEGITIMATE_PATTERNS),
        "ACTUAL SECURITY CONCERNS TO FLAG:\n" + _bullets(SECURITY_CONCERNS),
        "Code to analyze:\n```\n" + code[:budget] + "\n```",
        "Identify REAL security vulnerabilities only. Do not flag legitimate "
        "tenant operations as security issues.",
        "Format response as JSON:\n" + RESPONSE_FORMAT,
    ]
    return "\n\n".join(sections)


def build_narrative_prompt(
    package: Package,
    context: ScanContext,
    structure: Sequence[str],
    snippets: str,
) -> str:
    sections = [
        "Perform a comprehensive TENANT-AWARE security analysis of this application package.",
        f"App Name: {package.name}\nApp Type: {package.type}\nDescription: {package.description}",
    ]
    if context.tenant_id:
        team_name = context.team.name if context.team else "Unknown"
        sections.append(
            "TENANT ENVIRONMENT ANALYSIS:\n"
            + _bullets(
                [
                    f"Tenant ID: {context.tenant_id}",
                    f"Architecture: {context.isolation.name}",
                    f"Installed Apps: {len(context.installed_packages)} apps",
                    f"Team Context: {team_name}",
                ]
            )
        )
    sections += [
        "CRITICAL: This is a MULTI-TENANT application with complete isolation. "
        "Tenant operations are LEGITIMATE and should NOT be flagged.",
        "File Structure:\n" + "\n".join(structure),
        "Key Code Snippets:\n" + snippets,
        "Provide a detailed security assessment with a risk level and specific, "
        "actionable recommendations.",
    ]
    return "\n\n".join(sections)


__all__ = [
    "LEGITIMATE_PATTERNS",
    "SECURITY_CONCERNS",
    "RESPONSE_FORMAT",
    "installed_summary",
    "build_file_prompt",
    "build_narrative_prompt",
]
