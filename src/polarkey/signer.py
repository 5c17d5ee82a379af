"""
ECDSA signing and address derivation for PolarKey.

Signatures are ECDSA over P-256 with SHA-256, DER encoded. Addresses follow
the Sui scheme for secp256r1 keys:

    address = "0x" + hex(BLAKE2b-256(0x02 || compressed_public_key))
"""

import base64
import hashlib
import re
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .blake2b import blake2b
from .keys import coerce_public_key, public_key_to_bytes
from .keystore import KeyStore
from .types import (
    ADDRESS_LENGTH,
    ADDRESS_PREFIX,
    SECP256R1_FLAG,
    KeyNotFoundError,
    PolarKeyError,
)


PublicKeyLike = Union[ec.EllipticCurvePublicKey, bytes]
MessageLike = Union[bytes, bytearray, str]

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-f]{%d}$" % (ADDRESS_LENGTH * 2))


@dataclass(frozen=True)
class SignatureResult:
    """Result of signing a message."""

    signature: bytes
    """DER-encoded ECDSA signature."""

    message: bytes
    """The exact bytes that were signed."""

    digest: bytes
    """SHA-256 of the message."""

    public_key: bytes
    """Compressed SEC1 public key of the signing key."""

    @property
    def signature_b64(self) -> str:
        return base64.b64encode(self.signature).decode("ascii")

    @property
    def digest_hex(self) -> str:
        return self.digest.hex()

    def raw_signature(self) -> bytes:
        """Return the signature as fixed-size big-endian r || s (64 bytes)."""
        r, s = decode_dss_signature(self.signature)
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def _to_bytes(message: MessageLike) -> bytes:
    if isinstance(message, str):
        return message.encode("utf-8")
    if not isinstance(message, (bytes, bytearray, memoryview)):
        raise TypeError(f"message must be bytes or str, not {type(message).__name__!r}")
    return bytes(message)


def derive_address(public_key: PublicKeyLike) -> str:
    """
    Derive the account address of a P-256 public key.

    Args:
        public_key: The key object or its SEC1 encoding (either form)

    Returns:
        "0x" followed by 64 lowercase hex digits

    Raises:
        InvalidPublicKeyError: If the encoding is not a valid P-256 point
    """
    key_bytes = public_key_to_bytes(coerce_public_key(public_key), compressed=True)
    digest = blake2b(bytes([SECP256R1_FLAG]) + key_bytes, ADDRESS_LENGTH)
    return ADDRESS_PREFIX + digest.hex()


def is_valid_address(address: str) -> bool:
    """Check that a string is a canonical address."""
    return isinstance(address, str) and bool(_ADDRESS_PATTERN.match(address))


def normalize_address(address: str) -> str:
    """
    Canonicalize an address: trimmed, lowercase, "0x" prefixed.

    Raises:
        ValueError: If the text is not an address
    """
    text = address.strip().lower()
    if not text.startswith(ADDRESS_PREFIX):
        text = ADDRESS_PREFIX + text
    if not _ADDRESS_PATTERN.match(text):
        raise ValueError(f"Not a valid address: {address!r}")
    return text


def verify_signature(
    signature: bytes,
    message: MessageLike,
    public_key: PublicKeyLike,
) -> bool:
    """
    Verify a DER-encoded ECDSA-SHA256 signature.

    Malformed signatures or keys count as failed verification.

    Returns:
        True if the signature is valid, False otherwise
    """
    try:
        key = coerce_public_key(public_key)
        key.verify(bytes(signature), _to_bytes(message), ec.ECDSA(hashes.SHA256()))
    except (InvalidSignature, PolarKeyError, ValueError, TypeError):
        return False
    return True


class Signer:
    """
    Signs messages with the key held by a KeyStore.

    Example usage:
        ```python
        signer = Signer(keystore)
        result = signer.sign(b"upload170000000042")
        assert signer.verify(result.signature, result.message)
        ```
    """

    def __init__(self, keystore: KeyStore) -> None:
        self._keystore = keystore
        self._last_signature: Optional[SignatureResult] = None

    @property
    def keystore(self) -> KeyStore:
        return self._keystore

    @property
    def last_signature(self) -> Optional[SignatureResult]:
        """The most recent signature, kept for diagnostics."""
        return self._last_signature

    def public_key_bytes(self, compressed: bool = True) -> bytes:
        """
        Return the SEC1 encoding of the loaded public key.

        Raises:
            KeyNotFoundError: If no key is loaded.
        """
        with self._keystore.use_private_key() as private_key:
            return public_key_to_bytes(private_key.public_key(), compressed)

    def generate_address(self, public_key: Optional[PublicKeyLike] = None) -> str:
        """
        Derive an address from a public key, or from the loaded key if none given.

        Raises:
            KeyNotFoundError: If no key is given and none is loaded.
        """
        if public_key is None:
            public_key = self.public_key_bytes()
        return derive_address(public_key)

    def address(self) -> str:
        """Address of the loaded key."""
        return self.generate_address()

    def sign(self, message: MessageLike) -> SignatureResult:
        """
        Sign a message with the loaded key.

        The ECDSA primitive hashes the message with SHA-256 itself; the
        digest in the result is informational.

        Args:
            message: Bytes to sign (str is UTF-8 encoded)

        Returns:
            The signature, the signed bytes and their SHA-256 digest

        Raises:
            KeyNotFoundError: If no key is loaded.
        """
        data = _to_bytes(message)

        with self._keystore.use_private_key() as private_key:
            signature = private_key.sign(data, ec.ECDSA(hashes.SHA256()))
            public_key = public_key_to_bytes(private_key.public_key())

        result = SignatureResult(
            signature=signature,
            message=data,
            digest=hashlib.sha256(data).digest(),
            public_key=public_key,
        )
        self._last_signature = result
        return result

    def verify(
        self,
        signature: bytes,
        message: MessageLike,
        public_key: Optional[PublicKeyLike] = None,
    ) -> bool:
        """
        Verify a signature against a public key (the loaded key by default).

        Returns:
            True if valid; False for bad signatures, malformed input, or
            when no key is given and none is loaded.
        """
        if public_key is None:
            try:
                public_key = self.public_key_bytes()
            except KeyNotFoundError:
                return False
        return verify_signature(signature, message, public_key)
