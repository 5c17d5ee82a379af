"""P-256 key generation and encoding for PolarKey."""

import hashlib
from typing import Tuple, Union

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .types import (
    PRIVATE_KEY_SIZE,
    COMPRESSED_PUBLIC_KEY_SIZE,
    UNCOMPRESSED_PUBLIC_KEY_SIZE,
    InvalidKeyFormatError,
    InvalidPublicKeyError,
)


# Order of the P-256 base point
P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551


def generate_keypair() -> Tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """
    Generate a random P-256 signing key pair.

    Returns:
        Tuple of (private_key, public_key)
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


def private_key_from_scalar(scalar: bytes) -> ec.EllipticCurvePrivateKey:
    """
    Create a P-256 private key from its raw 32-byte big-endian scalar.

    Args:
        scalar: The private scalar (32 bytes)

    Returns:
        The private key

    Raises:
        InvalidKeyFormatError: If the scalar has the wrong length or is
            outside [1, n-1]
    """
    if len(scalar) != PRIVATE_KEY_SIZE:
        raise InvalidKeyFormatError(
            InvalidKeyFormatError.SCALAR,
            f"expected {PRIVATE_KEY_SIZE} bytes, got {len(scalar)}",
        )

    value = int.from_bytes(scalar, "big")
    if not 0 < value < P256_ORDER:
        raise InvalidKeyFormatError(
            InvalidKeyFormatError.SCALAR, "scalar is outside the curve order"
        )

    return ec.derive_private_key(value, ec.SECP256R1())


def private_key_to_scalar(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    """Return the raw 32-byte big-endian scalar of a private key."""
    value = private_key.private_numbers().private_value
    return value.to_bytes(PRIVATE_KEY_SIZE, "big")


def public_key_to_bytes(
    public_key: ec.EllipticCurvePublicKey,
    compressed: bool = True,
) -> bytes:
    """
    Encode a public key as a SEC1 point.

    Args:
        public_key: The P-256 public key
        compressed: 33-byte compressed form if True, 65-byte uncompressed otherwise

    Returns:
        The encoded point
    """
    point_format = (
        PublicFormat.CompressedPoint if compressed else PublicFormat.UncompressedPoint
    )
    return public_key.public_bytes(Encoding.X962, point_format)


def public_key_from_bytes(data: bytes) -> ec.EllipticCurvePublicKey:
    """
    Decode a SEC1-encoded P-256 public key (compressed or uncompressed).

    Raises:
        InvalidPublicKeyError: If the encoding is malformed or the point is
            not on the curve
    """
    if len(data) not in (COMPRESSED_PUBLIC_KEY_SIZE, UNCOMPRESSED_PUBLIC_KEY_SIZE):
        raise InvalidPublicKeyError(
            f"Public key must be {COMPRESSED_PUBLIC_KEY_SIZE} or "
            f"{UNCOMPRESSED_PUBLIC_KEY_SIZE} bytes, got {len(data)}"
        )

    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), bytes(data))
    except ValueError as e:
        raise InvalidPublicKeyError(f"Invalid P-256 public key: {e}") from e


def coerce_public_key(
    public_key: Union[ec.EllipticCurvePublicKey, bytes],
) -> ec.EllipticCurvePublicKey:
    """Accept either a key object or its SEC1 encoding."""
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return public_key
    return public_key_from_bytes(public_key)


def fingerprint(public_key: bytes) -> str:
    """
    Generate a human-readable fingerprint for a public key.

    The fingerprint is a truncated SHA-256 hash formatted for easy comparison.

    Args:
        public_key: The encoded public key

    Returns:
        A fingerprint string like "A7B3 C9D1 E5F2 8A4B"
    """
    hash_bytes = hashlib.sha256(public_key).digest()

    # First 8 bytes, grouped as 4 pairs
    hex_bytes = [f"{b:02X}" for b in hash_bytes[:8]]
    groups = [hex_bytes[i] + hex_bytes[i + 1] for i in range(0, 8, 2)]

    return " ".join(groups)
