"""
PolarKey - device identity and request signing

Python implementation of the PolarKey identity core: P-256 (ECDSA-SHA256)
signing keys, Sui-style BLAKE2b account addresses, and signed request
headers.
"""

from .blake2b import blake2b, Blake2b
from .keys import (
    generate_keypair,
    private_key_from_scalar,
    private_key_to_scalar,
    public_key_to_bytes,
    public_key_from_bytes,
    fingerprint,
)
from .types import (
    SECP256R1_FLAG,
    ADDRESS_LENGTH,
    DEFAULT_KEY_IDENTIFIER,
    PolarKeyError,
    InvalidOutputLengthError,
    KeyNotFoundError,
    InvalidKeyFormatError,
    InvalidPublicKeyError,
    ExportNotConfirmedError,
    RegenerateNotConfirmedError,
    SecureStoreError,
    PasswordRequiredError,
    CorruptedItemError,
    IncorrectPassphraseError,
    InvalidHeadersError,
    ConfigError,
)
from .storage import (
    Accessibility,
    SecureStore,
    InMemorySecureStore,
    FileSecureStore,
)
from .keystore import KeyState, KeyStore
from .signer import (
    SignatureResult,
    Signer,
    derive_address,
    is_valid_address,
    normalize_address,
    verify_signature,
)
from .auth import (
    AuthHeaders,
    RequestAuthenticator,
    build_message,
    generate_nonce,
    verify_headers,
)
from .config import IdentityConfig
from .identity import Identity

__version__ = "0.1.0"

__all__ = [
    # Hash
    "blake2b",
    "Blake2b",
    # Keys
    "generate_keypair",
    "private_key_from_scalar",
    "private_key_to_scalar",
    "public_key_to_bytes",
    "public_key_from_bytes",
    "fingerprint",
    # Constants
    "SECP256R1_FLAG",
    "ADDRESS_LENGTH",
    "DEFAULT_KEY_IDENTIFIER",
    # Errors
    "PolarKeyError",
    "InvalidOutputLengthError",
    "KeyNotFoundError",
    "InvalidKeyFormatError",
    "InvalidPublicKeyError",
    "ExportNotConfirmedError",
    "RegenerateNotConfirmedError",
    "SecureStoreError",
    "PasswordRequiredError",
    "CorruptedItemError",
    "IncorrectPassphraseError",
    "InvalidHeadersError",
    "ConfigError",
    # Storage
    "Accessibility",
    "SecureStore",
    "InMemorySecureStore",
    "FileSecureStore",
    # Key store
    "KeyState",
    "KeyStore",
    # Signer
    "SignatureResult",
    "Signer",
    "derive_address",
    "is_valid_address",
    "normalize_address",
    "verify_signature",
    # Auth
    "AuthHeaders",
    "RequestAuthenticator",
    "build_message",
    "generate_nonce",
    "verify_headers",
    # Identity
    "IdentityConfig",
    "Identity",
]
