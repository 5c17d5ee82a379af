"""Secure key-value store interface and in-memory implementation."""

import re
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class Accessibility(Enum):
    """When a stored secret may be read. Items never leave this device."""
    WHEN_UNLOCKED_THIS_DEVICE_ONLY = "when-unlocked-this-device-only"
    AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY = "after-first-unlock-this-device-only"


def validate_identifier(identifier: str) -> str:
    """Reject identifiers that could escape a store's namespace."""
    if not _IDENTIFIER_PATTERN.match(identifier) or identifier in (".", ".."):
        raise ValueError(f"Invalid secure store identifier: {identifier!r}")
    return identifier


class SecureStore(ABC):
    """Interface for storing secret bytes under an identifier."""

    @abstractmethod
    def put(
        self,
        identifier: str,
        secret: bytes,
        accessibility: Accessibility = Accessibility.WHEN_UNLOCKED_THIS_DEVICE_ONLY,
    ) -> None:
        """Store a secret, replacing any existing item under the identifier."""
        ...

    @abstractmethod
    def get(self, identifier: str) -> Optional[bytes]:
        """Retrieve a secret, or None if nothing is stored."""
        ...

    @abstractmethod
    def delete(self, identifier: str) -> None:
        """Delete a secret. Deleting a missing item is not an error."""
        ...

    def contains(self, identifier: str) -> bool:
        """Check if a secret exists for an identifier."""
        return self.get(identifier) is not None


class InMemorySecureStore(SecureStore):
    """
    In-memory implementation of SecureStore (for testing).

    WARNING: This is NOT secure for production use. Secrets are stored in
    memory without encryption and are lost when the process exits.
    """

    def __init__(self) -> None:
        self._items: dict[str, tuple[bytes, Accessibility]] = {}
        self._lock = threading.Lock()

    def put(
        self,
        identifier: str,
        secret: bytes,
        accessibility: Accessibility = Accessibility.WHEN_UNLOCKED_THIS_DEVICE_ONLY,
    ) -> None:
        validate_identifier(identifier)
        with self._lock:
            self._items[identifier] = (bytes(secret), accessibility)

    def get(self, identifier: str) -> Optional[bytes]:
        validate_identifier(identifier)
        with self._lock:
            item = self._items.get(identifier)
        if item is None:
            return None
        return bytes(item[0])

    def delete(self, identifier: str) -> None:
        validate_identifier(identifier)
        with self._lock:
            self._items.pop(identifier, None)

    def accessibility(self, identifier: str) -> Optional[Accessibility]:
        """Return the accessibility an item was stored with."""
        validate_identifier(identifier)
        with self._lock:
            item = self._items.get(identifier)
        return item[1] if item else None
