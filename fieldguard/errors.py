"""
Exception hierarchy for fieldguard.

Permission denial has no exception here: a denied model or
attribute is a normal outcome, encoded as a missing field (or a ``None``
result) in the filtered output, never as an exception.
"""

from __future__ import annotations

from typing import Any


class FieldGuardError(Exception):
    """Base error. ``code`` is stable and safe to expose to clients."""

    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class SchemaNotFound(FieldGuardError):
    """A model name could not be resolved against the content schema."""

    code = "SCHEMA_NOT_FOUND"

    def __init__(self, model: str, plugin: str | None = None) -> None:
        qualified = f"{plugin}.{model}" if plugin else model
        super().__init__(f"Unknown model {qualified!r}", model=model, plugin=plugin)
        self.model = model
        self.plugin = plugin


class SchemaConfigError(FieldGuardError, ValueError):
    """Raised when the content schema YAML is invalid."""

    code = "SCHEMA_CONFIG_ERROR"


class StoreUnavailable(FieldGuardError):
    """Transient storage failure. Callers may retry; nothing retries internally."""

    code = "STORE_UNAVAILABLE"


class InvalidCredential(FieldGuardError):
    """The caller presented a credential that could not be resolved to an identity."""

    code = "INVALID_CREDENTIAL"


class RoleNotFound(FieldGuardError):
    """A required role (usually the public role) is not present in the store."""

    code = "ROLE_NOT_FOUND"


class SerializationTimeout(FieldGuardError):
    code = "SERIALIZATION_TIMEOUT"


class RecordNotFound(FieldGuardError):
    code = "RECORD_NOT_FOUND"
