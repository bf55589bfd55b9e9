# Copyright (c) 2025 Anush Krishna
# Licensed under the MIT License. See LICENSE file in the project root.

"""Custom exception hierarchy for AppGuard.

This module defines all custom exceptions used throughout the application,
providing a clear error hierarchy for better error handling and debugging.

All exceptions inherit from AppGuardError to allow catching application-specific
errors separately from standard Python exceptions.

Only ExtractionError is fatal to a scan. Every other error raised inside an
analyzer is converted into a ScanWarning by the pipeline so that each
submitted package still receives a decision.

Exception Hierarchy
-------------------
AppGuardError (base)
├── ExtractionError
├── ManifestParseError
├── ContextLookupError
├── AiTransportError
├── AiParseError
├── RuleTableError
├── RegistryError
├── DatabaseError
├── ConfigurationError
└── ValidationError

Examples
--------
>>> try:
...     raise ExtractionError('upload.zip', 'Archive is not a zip or tar file')
... except AppGuardError as e:
...     print(f"Extraction error: {e.archive}")
Extraction error: upload.zip
"""


class AppGuardError(Exception):
    """Base exception for all AppGuard errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Dictionary containing additional error context. Default is None.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error context information.

    Examples
    --------
    >>> error = AppGuardError("Something went wrong", {"code": 500})
    >>> error.message
    'Something went wrong'
    >>> error.details['code']
    500
    """

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ExtractionError(AppGuardError):
    """Raised when an uploaded archive cannot be extracted.

    This is the only fatal error of the scanning pipeline. It covers
    unreadable or unsupported archives, archives exceeding the extraction
    size ceiling, and archives whose every entry was rejected by the
    path-traversal guard.

    Parameters
    ----------
    archive : str
        Path of the archive being extracted.
    message : str
        Error message describing the failure.
    details : dict, optional
        Additional context (rejected entries, byte counts). Default is None.

    Examples
    --------
    >>> error = ExtractionError('app.zip', 'No entries survived extraction')
    >>> error.details['archive']
    'app.zip'
    """

    def __init__(self, archive: str, message: str, details: dict = None):
        details = details or {}
        details['archive'] = archive
        super().__init__(f"Extraction of '{archive}' failed: {message}", details)
        self.archive = archive


class ManifestParseError(AppGuardError):
    """Raised when a dependency or app manifest cannot be parsed.

    Non-fatal: the manifest is skipped and a warning is recorded.

    Parameters
    ----------
    manifest : str
        Relative path of the manifest file.
    message : str
        Error message describing the parsing failure.
    details : dict, optional
        Additional context. Default is None.

    Examples
    --------
    >>> error = ManifestParseError('composer.json', 'Expecting value')
    >>> error.manifest
    'composer.json'
    """

    def __init__(self, manifest: str, message: str, details: dict = None):
        details = details or {}
        details['manifest'] = manifest
        super().__init__(f"Manifest '{manifest}' could not be parsed: {message}", details)
        self.manifest = manifest


class ContextLookupError(AppGuardError):
    """Raised when the tenant context cannot be assembled from the registry.

    Non-fatal: the context builder falls back to a minimal context.

    Examples
    --------
    >>> error = ContextLookupError(7, 'registry unavailable')
    >>> error.team_id
    7
    """

    def __init__(self, team_id, message: str, details: dict = None):
        details = details or {}
        details['team_id'] = team_id
        super().__init__(f"Context lookup for team '{team_id}' failed: {message}", details)
        self.team_id = team_id


class AiTransportError(AppGuardError):
    """Raised when the AI text-completion call fails or times out.

    Examples
    --------
    >>> error = AiTransportError('request timed out', {'timeout_s': 30})
    >>> error.details['timeout_s']
    30
    """


class AiParseError(AppGuardError):
    """Raised when no structured JSON object can be recovered from an AI response.

    Examples
    --------
    >>> error = AiParseError('no JSON object found')
    >>> error.message
    'no JSON object found'
    """


class RuleTableError(AppGuardError):
    """Raised when a versioned rule table is missing or invalid.

    Parameters
    ----------
    table : str
        Name of the rule table (e.g. 'malware', 'allowlist').
    message : str
        Error message describing the problem.

    Examples
    --------
    >>> error = RuleTableError('malware', 'invalid regex')
    >>> error.table
    'malware'
    """

    def __init__(self, table: str, message: str, details: dict = None):
        details = details or {}
        details['table'] = table
        super().__init__(f"Rule table '{table}' is invalid: {message}", details)
        self.table = table


class RegistryError(AppGuardError):
    """Raised when the package registry cannot be read or updated.

    Parameters
    ----------
    operation : str
        Registry operation that failed (e.g., 'get_package').
    message : str
        Error message describing the failure.

    Examples
    --------
    >>> error = RegistryError('get_package', 'package 3 not found')
    >>> error.operation
    'get_package'
    """

    def __init__(self, operation: str, message: str, details: dict = None):
        details = details or {}
        details['operation'] = operation
        super().__init__(f"Registry operation '{operation}' failed: {message}", details)
        self.operation = operation


class DatabaseError(AppGuardError):
    """Raised when database operations fail.

    Parameters
    ----------
    operation : str
        Database operation that failed (e.g., 'insert', 'query', 'update').
    message : str
        Error message describing the database failure.
    details : dict, optional
        Additional context (table name, query, etc.). Default is None.

    Examples
    --------
    >>> error = DatabaseError('insert', 'Duplicate key violation')
    >>> error.operation
    'insert'
    """

    def __init__(self, operation: str, message: str, details: dict = None):
        details = details or {}
        details['operation'] = operation
        super().__init__(f"Database operation '{operation}' failed: {message}", details)
        self.operation = operation


class ConfigurationError(AppGuardError):
    """Raised when there are configuration-related issues.

    Parameters
    ----------
    config_key : str
        Configuration key that caused the error.
    message : str
        Error message describing the configuration issue.
    details : dict, optional
        Additional context. Default is None.

    Examples
    --------
    >>> error = ConfigurationError('database_url', 'Invalid URL format')
    >>> error.config_key
    'database_url'
    """

    def __init__(self, config_key: str, message: str, details: dict = None):
        details = details or {}
        details['config_key'] = config_key
        super().__init__(f"Configuration error for '{config_key}': {message}", details)
        self.config_key = config_key


class ValidationError(AppGuardError):
    """Raised when caller-supplied data fails validation.

    Parameters
    ----------
    field : str
        Field that failed validation.
    message : str
        Error message describing the validation failure.

    Examples
    --------
    >>> error = ValidationError('reason', 'Must be at least 10 characters')
    >>> error.field
    'reason'
    """

    def __init__(self, field: str, message: str, details: dict = None):
        details = details or {}
        details['field'] = field
        super().__init__(f"Validation failed for '{field}': {message}", details)
        self.field = field
