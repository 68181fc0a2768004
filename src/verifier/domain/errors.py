from __future__ import annotations


class VerifierError(Exception):
    """Base class for errors raised by the verification pipeline."""


class AttachmentDecodeError(VerifierError, ValueError):
    """An inline attachment reference could not be decoded."""


class StorageError(VerifierError, RuntimeError):
    """The session/message store is unavailable or rejected a write."""


class ModelUnavailableError(VerifierError, RuntimeError):
    """No chat model client could be constructed."""
