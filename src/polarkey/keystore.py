"""
Signing key lifecycle for PolarKey.

A KeyStore owns the single active P-256 signing key of an identity. The raw
private scalar is persisted in a SecureStore; the in-memory key object is
guarded by one re-entrant lock so that generate/import/delete never overlap
a sign, verify or export on the same identity.

Lifecycle:

    NO_KEY --generate/import--> KEY_LOADED --regenerate/import--> KEY_LOADED
    KEY_LOADED --delete--> NO_KEY
"""

import base64
import binascii
import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from cryptography.hazmat.primitives.asymmetric import ec

from .keys import (
    fingerprint,
    generate_keypair,
    private_key_from_scalar,
    private_key_to_scalar,
    public_key_to_bytes,
)
from .storage import Accessibility, SecureStore, validate_identifier
from .types import (
    DEFAULT_KEY_IDENTIFIER,
    CorruptedItemError,
    ExportNotConfirmedError,
    InvalidKeyFormatError,
    KeyNotFoundError,
    RegenerateNotConfirmedError,
    SecureStoreError,
)


logger = logging.getLogger(__name__)


class KeyState(Enum):
    """Whether a signing key is loaded."""
    NO_KEY = "no-key"
    KEY_LOADED = "key-loaded"


class KeyStore:
    """
    Owns the active P-256 signing key and its persisted copy.

    Example usage:
        ```python
        keystore = KeyStore(FileSecureStore(passphrase="..."))

        if keystore.load_existing() is None:
            keystore.generate()
        ```
    """

    def __init__(
        self,
        store: SecureStore,
        identifier: str = DEFAULT_KEY_IDENTIFIER,
        accessibility: Accessibility = Accessibility.WHEN_UNLOCKED_THIS_DEVICE_ONLY,
    ) -> None:
        self._store = store
        self._identifier = validate_identifier(identifier)
        self._accessibility = accessibility
        self._private_key: Optional[ec.EllipticCurvePrivateKey] = None
        self._lock = threading.RLock()

    @property
    def identifier(self) -> str:
        """The secure store identifier of the signing key."""
        return self._identifier

    @property
    def state(self) -> KeyState:
        with self._lock:
            return KeyState.NO_KEY if self._private_key is None else KeyState.KEY_LOADED

    @property
    def has_key(self) -> bool:
        return self.state is KeyState.KEY_LOADED

    @property
    def private_key(self) -> Optional[ec.EllipticCurvePrivateKey]:
        with self._lock:
            return self._private_key

    @property
    def public_key(self) -> Optional[ec.EllipticCurvePublicKey]:
        with self._lock:
            if self._private_key is None:
                return None
            return self._private_key.public_key()

    @contextmanager
    def use_private_key(self) -> Iterator[ec.EllipticCurvePrivateKey]:
        """
        Hold the key lock and yield the loaded private key.

        Raises:
            KeyNotFoundError: If no key is loaded.
        """
        with self._lock:
            if self._private_key is None:
                raise KeyNotFoundError(self._identifier)
            yield self._private_key

    def generate(self) -> ec.EllipticCurvePublicKey:
        """
        Create a new signing key, replacing any stored key.

        Returns:
            The new public key.

        Raises:
            SecureStoreError: If the key cannot be persisted.
        """
        private_key, public_key = generate_keypair()
        with self._lock:
            self._persist(private_key)

        logger.info(
            "Generated signing key %s",
            fingerprint(public_key_to_bytes(public_key)),
        )
        return public_key

    def ensure_key(self) -> ec.EllipticCurvePublicKey:
        """Return the loaded public key, generating a key first if there is none."""
        with self._lock:
            if self._private_key is None:
                return self.generate()
            return self._private_key.public_key()

    def load_existing(self) -> Optional[ec.EllipticCurvePrivateKey]:
        """
        Load the stored signing key, if there is a usable one.

        A missing or corrupted item yields None rather than an error.

        Returns:
            The private key, or None.

        Raises:
            SecureStoreError: If the store cannot be read for reasons other
                than corruption, such as IncorrectPassphraseError. The
                stored item is left untouched.
        """
        with self._lock:
            try:
                scalar = self._store.get(self._identifier)
            except CorruptedItemError:
                logger.warning("Stored signing key %s is unreadable", self._identifier)
                self._private_key = None
                return None

            if scalar is None:
                self._private_key = None
                return None

            try:
                private_key = private_key_from_scalar(scalar)
            except InvalidKeyFormatError as e:
                logger.warning("Stored signing key %s is invalid: %s", self._identifier, e)
                self._private_key = None
                return None

            self._private_key = private_key

        logger.info(
            "Loaded signing key %s",
            fingerprint(public_key_to_bytes(private_key.public_key())),
        )
        return private_key

    def export_private_key(self, confirm: bool = False) -> str:
        """
        Export the raw private scalar as base64 for user-initiated backup.

        Anyone holding the returned value controls the account.

        Args:
            confirm: Must be True; set only after the user explicitly asked
                     for the export.

        Returns:
            The 32-byte scalar, base64 encoded, with no envelope.

        Raises:
            ExportNotConfirmedError: If confirm is not True.
            KeyNotFoundError: If no key is loaded.
        """
        if confirm is not True:
            raise ExportNotConfirmedError()

        with self.use_private_key() as private_key:
            scalar = private_key_to_scalar(private_key)

        logger.warning(
            "Private key %s exported; the exported value grants full account control",
            self._identifier,
        )
        return base64.b64encode(scalar).decode("ascii")

    def import_private_key(self, encoded: str) -> ec.EllipticCurvePublicKey:
        """
        Replace the signing key with an exported one.

        Args:
            encoded: Base64 of a raw 32-byte P-256 scalar.

        Returns:
            The public key of the imported key.

        Raises:
            InvalidKeyFormatError: With reason "base64" if the text does not
                decode, or "scalar" if it is not a valid P-256 private key.
            SecureStoreError: If the key cannot be persisted.
        """
        try:
            scalar = base64.b64decode(encoded.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidKeyFormatError(InvalidKeyFormatError.BASE64) from e

        private_key = private_key_from_scalar(scalar)
        public_key = private_key.public_key()

        with self._lock:
            self._persist(private_key)

        logger.info(
            "Imported signing key %s",
            fingerprint(public_key_to_bytes(public_key)),
        )
        return public_key

    def regenerate(self, confirm: bool = False) -> ec.EllipticCurvePublicKey:
        """
        Replace the loaded key with a new one.

        The previous address can no longer be used from this device.

        Raises:
            RegenerateNotConfirmedError: If confirm is not True.
            KeyNotFoundError: If no key is loaded.
        """
        if confirm is not True:
            raise RegenerateNotConfirmedError()

        with self._lock:
            if self._private_key is None:
                raise KeyNotFoundError(self._identifier)
            return self.generate()

    def delete(self) -> None:
        """Remove the stored key and forget the loaded one."""
        with self._lock:
            self._store.delete(self._identifier)
            self._private_key = None

        logger.info("Deleted signing key %s", self._identifier)

    def _persist(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        # Reading first also surfaces store access errors before anything is removed
        try:
            previous = self._store.get(self._identifier)
        except CorruptedItemError:
            previous = None

        self._store.delete(self._identifier)
        try:
            self._store.put(
                self._identifier,
                private_key_to_scalar(private_key),
                self._accessibility,
            )
        except SecureStoreError:
            if previous is not None:
                self._restore(previous)
            raise
        self._private_key = private_key

    def _restore(self, scalar: bytes) -> None:
        """Put back the previously stored scalar after a failed write."""
        try:
            self._store.put(self._identifier, scalar, self._accessibility)
        except SecureStoreError:
            logger.error(
                "Could not restore stored signing key %s; only the loaded copy remains",
                self._identifier,
            )
        else:
            logger.warning("Kept previous signing key %s after a failed write", self._identifier)
