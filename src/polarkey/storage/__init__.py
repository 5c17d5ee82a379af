"""PolarKey secure storage module."""

from .secure_store import (
    Accessibility,
    SecureStore,
    InMemorySecureStore,
    validate_identifier,
)
from .file_secure_store import FileSecureStore

__all__ = [
    "Accessibility",
    "SecureStore",
    "InMemorySecureStore",
    "validate_identifier",
    "FileSecureStore",
]
