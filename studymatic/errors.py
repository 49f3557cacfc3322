"""Exception taxonomy shared by the catalog client, the mirror and the CLI.

Only :class:`TransportError` is recovered inside a run; every other kind
stops the run.
"""

from __future__ import annotations


class StudymaticError(RuntimeError):
    """Base class for all errors raised by *studymatic*."""


class ConfigurationError(StudymaticError):
    """Raised when the settings are incomplete or invalid (e.g. no server)."""


class AuthError(StudymaticError):
    """Raised when the catalog rejects the supplied credentials."""


class CatalogUnavailable(StudymaticError):
    """Raised when the study listing (or a study lookup) cannot be retrieved."""


class NotFound(StudymaticError):
    """Raised when a single-study lookup names an unknown identifier."""


class TransportError(StudymaticError):
    """Raised when fetching one study's data or variables fails remotely."""


class SerializationError(StudymaticError):
    """Raised when a metadata document cannot be built or encoded."""
