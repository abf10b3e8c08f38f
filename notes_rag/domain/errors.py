from __future__ import annotations


class ValidationError(ValueError):
    """Raised when caller-supplied data is structurally invalid (missing ID, vector, query)."""


class UpstreamUnavailable(RuntimeError):
    """Raised when an embedding or text-generation provider fails or times out."""


class PersistenceError(RuntimeError):
    """Raised when the vector index snapshot cannot be written or read back."""


class NoteNotFound(LookupError):
    """Raised when a note-level operation targets an unknown note ID."""
