"""Exceptions that abort a synthesis run."""


class OpenApiSynthError(Exception):
    """Base class for fatal pipeline errors."""


class SourceError(OpenApiSynthError):
    """An SDK source root is missing or unreadable."""


class ConfigError(OpenApiSynthError):
    """A configuration file could not be read or failed validation."""


class DocumentError(OpenApiSynthError):
    """An OpenAPI document could not be read or is not a mapping."""
