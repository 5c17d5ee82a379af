"""
File-based secure store with passphrase protection.

Stores secrets encrypted with AES-256-GCM, using a passphrase derived key
via PBKDF2. Items are stored in `~/.polarkey/keys/` unless another
directory is given.

## Storage Format

Each item file contains:
- Salt: 32 bytes (random, for PBKDF2)
- Nonce: 12 bytes (random, for AES-GCM)
- Ciphertext: the encrypted secret (32 bytes for a signing key)
- Tag: 16 bytes (authentication tag)

The item identifier is bound as associated data, so a file renamed to
another identifier fails to decrypt.

The directory also holds a `.passphrase` verifier written with the first
item: a 32-byte salt followed by the 32-byte PBKDF2 output of the
passphrase. Every read and write checks the passphrase against it, so a
wrong passphrase raises IncorrectPassphraseError and is never mistaken for
a corrupted item.

## Security

- Uses PBKDF2 with 100,000 iterations for key derivation
- Uses AES-256-GCM for authenticated encryption
- Files are written atomically with 600 permissions (owner read/write only)
- The directory is created with 700 permissions
- Salt is unique per item file
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Tuple, Union

from cryptography.exceptions import InvalidKey, InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..types import (
    CorruptedItemError,
    IncorrectPassphraseError,
    PasswordRequiredError,
    SecureStoreError,
)
from .secure_store import Accessibility, SecureStore, validate_identifier


logger = logging.getLogger(__name__)


class FileSecureStore(SecureStore):
    """
    File-based secure store with passphrase protection.

    Example usage:
        ```python
        store = FileSecureStore(passphrase="user-passphrase")

        store.put("polarkey.signing-key", scalar)
        scalar = store.get("polarkey.signing-key")
        ```
    """

    # PBKDF2 iteration count (OWASP recommendation for SHA256)
    PBKDF2_ITERATIONS = 100_000

    # Salt size in bytes
    SALT_SIZE = 32

    # Derived key size in bytes
    KEY_SIZE = 32

    # AES-GCM nonce size in bytes
    NONCE_SIZE = 12

    # AES-GCM tag size in bytes
    TAG_SIZE = 16

    # Directory name for item storage, relative to the home directory
    DIRECTORY_NAME = ".polarkey/keys"

    # Minimum file size (salt + nonce + tag)
    MIN_FILE_SIZE = 32 + 12 + 16

    FILE_SUFFIX = ".key"

    VERIFIER_NAME = ".passphrase"

    def __init__(
        self,
        passphrase: Optional[str] = None,
        directory: Optional[Union[str, Path]] = None,
    ) -> None:
        """
        Create a new file secure store.

        Args:
            passphrase: Optional passphrase for encryption. If not provided,
                        must be set before use.
            directory: Storage directory. Defaults to ~/.polarkey/keys.
        """
        self._passphrase = passphrase
        self._directory = Path(directory).expanduser() if directory else None
        self._lock = threading.Lock()
        # (passphrase, salt, derived key) of the last derivation
        self._cached_key: Optional[Tuple[str, bytes, bytes]] = None
        self._verified_passphrase: Optional[str] = None

    @property
    def directory(self) -> Path:
        """The item storage directory."""
        if self._directory is not None:
            return self._directory
        return Path.home() / self.DIRECTORY_NAME

    def set_passphrase(self, passphrase: str) -> None:
        """Set the passphrase for encryption/decryption."""
        with self._lock:
            self._passphrase = passphrase
            self._cached_key = None
            self._verified_passphrase = None

    def clear_passphrase(self) -> None:
        """Clear the passphrase and cached keys from memory."""
        with self._lock:
            self._passphrase = None
            self._cached_key = None
            self._verified_passphrase = None

    def put(
        self,
        identifier: str,
        secret: bytes,
        accessibility: Accessibility = Accessibility.WHEN_UNLOCKED_THIS_DEVICE_ONLY,
    ) -> None:
        """
        Store a secret under an identifier.

        Args:
            identifier: The item identifier.
            secret: The secret bytes.
            accessibility: Files are readable only by the owning user; both
                           policies keep the item on this device.

        Raises:
            PasswordRequiredError: If no passphrase is set.
            IncorrectPassphraseError: If the passphrase does not match the store.
            SecureStoreError: If the file cannot be written.
        """
        validate_identifier(identifier)
        passphrase = self._check_passphrase()

        salt = os.urandom(self.SALT_SIZE)
        nonce = os.urandom(self.NONCE_SIZE)

        derived_key = self._derive_key(passphrase, salt)
        ciphertext_and_tag = AESGCM(derived_key).encrypt(
            nonce, bytes(secret), identifier.encode("utf-8")
        )

        try:
            directory = self._ensure_directory()
            self._ensure_verifier(passphrase, directory)
            self._write_atomic(
                self._item_path(identifier, directory),
                salt + nonce + ciphertext_and_tag,
            )
        except OSError as e:
            raise SecureStoreError(f"Failed to write item {identifier!r}", e.errno) from e

        logger.debug("Stored item %s (%s)", identifier, accessibility.value)

    def get(self, identifier: str) -> Optional[bytes]:
        """
        Retrieve a secret.

        Returns:
            The secret bytes, or None if no item exists.

        Raises:
            PasswordRequiredError: If no passphrase is set.
            IncorrectPassphraseError: If the passphrase does not match the store.
            CorruptedItemError: If the file is truncated or fails to decrypt.
            SecureStoreError: If the file cannot be read.
        """
        validate_identifier(identifier)
        passphrase = self._check_passphrase()

        file_path = self._item_path(identifier, self.directory)
        try:
            file_data = file_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise SecureStoreError(f"Failed to read item {identifier!r}", e.errno) from e

        if len(file_data) < self.MIN_FILE_SIZE:
            raise CorruptedItemError(identifier)

        salt = file_data[: self.SALT_SIZE]
        nonce = file_data[self.SALT_SIZE : self.SALT_SIZE + self.NONCE_SIZE]
        ciphertext_and_tag = file_data[self.SALT_SIZE + self.NONCE_SIZE :]

        derived_key = self._derive_key(passphrase, salt)
        try:
            return AESGCM(derived_key).decrypt(
                nonce, ciphertext_and_tag, identifier.encode("utf-8")
            )
        except InvalidTag as e:
            raise CorruptedItemError(identifier) from e

    def contains(self, identifier: str) -> bool:
        """Check if an item file exists. Does not need the passphrase."""
        validate_identifier(identifier)
        return self._item_path(identifier, self.directory).exists()

    def delete(self, identifier: str) -> None:
        """
        Delete an item.

        Raises:
            SecureStoreError: If the file exists but cannot be removed.
        """
        validate_identifier(identifier)
        file_path = self._item_path(identifier, self.directory)
        try:
            file_path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise SecureStoreError(f"Failed to delete item {identifier!r}", e.errno) from e

        logger.debug("Deleted item %s", identifier)

    def list_identifiers(self) -> List[str]:
        """List all stored item identifiers."""
        directory = self.directory

        if not directory.exists():
            return []

        return sorted(
            f.stem
            for f in directory.iterdir()
            if f.suffix == self.FILE_SUFFIX
        )

    def _check_passphrase(self) -> str:
        """
        Return the passphrase after checking it against the store's verifier.

        A store without a verifier accepts any passphrase; the first put
        records it.
        """
        with self._lock:
            passphrase = self._passphrase
            if not passphrase:
                raise PasswordRequiredError()
            if self._verified_passphrase == passphrase:
                return passphrase

        verifier_path = self.directory / self.VERIFIER_NAME
        try:
            verifier = verifier_path.read_bytes()
        except FileNotFoundError:
            return passphrase
        except OSError as e:
            raise SecureStoreError("Failed to read passphrase verifier", e.errno) from e

        if len(verifier) != self.SALT_SIZE + self.KEY_SIZE:
            raise SecureStoreError(f"Passphrase verifier {verifier_path} is malformed")

        try:
            self._kdf(verifier[: self.SALT_SIZE]).verify(
                passphrase.encode("utf-8"), verifier[self.SALT_SIZE :]
            )
        except InvalidKey as e:
            raise IncorrectPassphraseError() from e

        with self._lock:
            if self._passphrase == passphrase:
                self._verified_passphrase = passphrase
        return passphrase

    def _ensure_verifier(self, passphrase: str, directory: Path) -> None:
        """Record the passphrase verifier if the store has none yet."""
        verifier_path = directory / self.VERIFIER_NAME
        if verifier_path.exists():
            return

        salt = os.urandom(self.SALT_SIZE)
        expected = self._kdf(salt).derive(passphrase.encode("utf-8"))
        self._write_atomic(verifier_path, salt + expected)

        with self._lock:
            if self._passphrase == passphrase:
                self._verified_passphrase = passphrase

    def _ensure_directory(self) -> Path:
        """Ensure the storage directory exists."""
        directory = self.directory
        directory.mkdir(parents=True, exist_ok=True)
        try:
            directory.chmod(0o700)
        except OSError:
            pass  # Not supported on some platforms
        return directory

    def _item_path(self, identifier: str, directory: Path) -> Path:
        """Return the file path for an item."""
        return directory / f"{identifier}{self.FILE_SUFFIX}"

    def _write_atomic(self, file_path: Path, data: bytes) -> None:
        """Write to a temp file in the same directory, then rename over the target."""
        fd, temp_name = tempfile.mkstemp(dir=file_path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            self._set_restrictive_permissions(Path(temp_name))
            os.replace(temp_name, file_path)
        except BaseException:
            try:
                os.unlink(temp_name)
            except OSError:
                pass
            raise

    def _kdf(self, salt: bytes) -> PBKDF2HMAC:
        return PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_SIZE,
            salt=salt,
            iterations=self.PBKDF2_ITERATIONS,
        )

    def _derive_key(self, passphrase: str, salt: bytes) -> bytes:
        """Derive an encryption key from the passphrase using PBKDF2."""
        cached = self._cached_key
        if cached is not None and cached[0] == passphrase and cached[1] == salt:
            return cached[2]

        derived_key = self._kdf(salt).derive(passphrase.encode("utf-8"))

        # One assignment so readers never pair a salt with another salt's key
        self._cached_key = (passphrase, salt, derived_key)

        return derived_key

    def _set_restrictive_permissions(self, file_path: Path) -> None:
        """Set restrictive file permissions (600 on Unix)."""
        try:
            file_path.chmod(0o600)
        except OSError:
            pass  # Not supported on some platforms
