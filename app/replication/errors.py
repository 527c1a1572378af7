"""Replication engine errors.

Remote failures arrive as RecordStoreError and are translated into a
human-readable message at the call site that owns the failure.
"""

from app.interfaces.record_store import RecordStoreError

TOKEN_INVALID_MESSAGE = "Notion API token is invalid or expired"


class ReplicationError(Exception):
    """Base class for errors raised by the replication engine."""


class ConfigurationError(ReplicationError):
    """A required collection or epic id is missing."""


class EpicLookupError(ReplicationError):
    """The epic page of a batch could not be loaded."""


class TemplateQueryError(ReplicationError):
    """The template pages of a batch could not be loaded."""


class ReplicaCreationError(ReplicationError):
    """A replica page could not be created."""


def describe_store_error(
    error: RecordStoreError,
    *,
    not_found: str | None = None,
    validation: str | None = None,
    fallback: str | None = None,
) -> str:
    """Translate a record store failure into a message for one call site.

    Args:
        error: The failure.
        not_found: Message used for ``not_found``.
        validation: Message used for ``validation_error``.
        fallback: Prefix for any other kind; the store message is appended.

    Returns:
        A human-readable message.
    """
    if error.kind == "unauthorized":
        return TOKEN_INVALID_MESSAGE
    if error.kind == "not_found" and not_found:
        return not_found
    if error.kind == "validation_error" and validation:
        return validation
    if fallback:
        return f"{fallback}: {error.message}"
    return error.message
