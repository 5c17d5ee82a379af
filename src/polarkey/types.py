"""Type definitions and constants for PolarKey."""

from typing import Optional


# Hash constants
BLAKE2B_BLOCK_SIZE = 128
BLAKE2B_MAX_OUTPUT_SIZE = 64

# Key constants
PRIVATE_KEY_SIZE = 32
COMPRESSED_PUBLIC_KEY_SIZE = 33
UNCOMPRESSED_PUBLIC_KEY_SIZE = 65

# Address constants
SECP256R1_FLAG = 0x02
ADDRESS_LENGTH = 32
ADDRESS_PREFIX = "0x"

# Storage constants
DEFAULT_KEY_IDENTIFIER = "polarkey.signing-key"


# Exception types
class PolarKeyError(Exception):
    """Base exception for PolarKey errors."""
    pass


class InvalidOutputLengthError(PolarKeyError, ValueError):
    """Digest length outside 1..64 was requested."""

    def __init__(self, output_length: object) -> None:
        super().__init__(
            f"Output length must be between 1 and {BLAKE2B_MAX_OUTPUT_SIZE}, "
            f"got {output_length!r}"
        )
        self.output_length = output_length


class KeyNotFoundError(PolarKeyError):
    """No signing key has been generated or loaded."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"No signing key for identifier: {identifier}")
        self.identifier = identifier


class InvalidKeyFormatError(PolarKeyError):
    """Imported private key could not be decoded or is not a P-256 scalar."""

    BASE64 = "base64"
    SCALAR = "scalar"

    def __init__(self, reason: str, detail: Optional[str] = None) -> None:
        if reason == self.BASE64:
            message = "Private key is not valid base64"
        else:
            message = "Private key is not a valid P-256 private key"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.reason = reason


class InvalidPublicKeyError(PolarKeyError):
    """Invalid public key encoding or point not on the curve."""
    pass


class ExportNotConfirmedError(PolarKeyError):
    """Private key export was requested without explicit confirmation."""

    def __init__(self) -> None:
        super().__init__(
            "Exporting the private key requires explicit confirmation; "
            "the exported value grants full control of the account"
        )


class RegenerateNotConfirmedError(PolarKeyError):
    """Key regeneration was requested without explicit confirmation."""

    def __init__(self) -> None:
        super().__init__(
            "Regenerating the signing key requires explicit confirmation; "
            "the current address will no longer be usable from this device"
        )


class SecureStoreError(PolarKeyError):
    """Secure store read, write or delete failed."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        if status is not None:
            message = f"{message} (status {status})"
        super().__init__(message)
        self.status = status


class PasswordRequiredError(SecureStoreError):
    """Raised when a passphrase is required but not set."""

    def __init__(self) -> None:
        super().__init__("Passphrase is required for file secure store")


class CorruptedItemError(SecureStoreError):
    """Stored item could not be decrypted or has an invalid layout."""

    def __init__(self, identifier: str) -> None:
        super().__init__(
            f"Stored item {identifier!r} is corrupted"
        )
        self.identifier = identifier


class IncorrectPassphraseError(SecureStoreError):
    """The passphrase does not match the one the store was created with."""

    def __init__(self) -> None:
        super().__init__("Passphrase does not match this secure store")


class InvalidHeadersError(PolarKeyError):
    """Auth headers are missing fields or carry malformed values."""
    pass


class ConfigError(PolarKeyError):
    """Invalid configuration value."""
    pass
