"""Tests for P-256 key helpers."""

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from polarkey.keys import (
    coerce_public_key,
    fingerprint,
    generate_keypair,
    private_key_from_scalar,
    private_key_to_scalar,
    public_key_from_bytes,
    public_key_to_bytes,
)
from polarkey.types import InvalidKeyFormatError, InvalidPublicKeyError
from .test_vectors import (
    ALICE_SCALAR_HEX,
    ALICE_PUBLIC_KEY_COMPRESSED_HEX,
    BOB_SCALAR_HEX,
    P256_ORDER_HEX,
)


class TestScalars:
    """Raw private scalar conversion."""

    def test_scalar_one_gives_base_point(self) -> None:
        private_key = private_key_from_scalar(bytes.fromhex(ALICE_SCALAR_HEX))
        public_bytes = public_key_to_bytes(private_key.public_key())

        assert public_bytes.hex() == ALICE_PUBLIC_KEY_COMPRESSED_HEX

    def test_scalar_roundtrip(self) -> None:
        scalar = bytes.fromhex(BOB_SCALAR_HEX)
        private_key = private_key_from_scalar(scalar)

        assert private_key_to_scalar(private_key) == scalar

    def test_generated_key_scalar_is_32_bytes(self) -> None:
        private_key, _ = generate_keypair()
        assert len(private_key_to_scalar(private_key)) == 32

    @pytest.mark.parametrize(
        "scalar_hex",
        ["00" * 32, P256_ORDER_HEX, "ff" * 32],
    )
    def test_out_of_range_scalar_rejected(self, scalar_hex: str) -> None:
        with pytest.raises(InvalidKeyFormatError) as exc_info:
            private_key_from_scalar(bytes.fromhex(scalar_hex))
        assert exc_info.value.reason == InvalidKeyFormatError.SCALAR

    @pytest.mark.parametrize("length", [0, 16, 31, 33, 64])
    def test_wrong_length_rejected(self, length: int) -> None:
        with pytest.raises(InvalidKeyFormatError, match="32 bytes"):
            private_key_from_scalar(b"\x01" * length)


class TestPublicKeyEncoding:
    """SEC1 point encoding."""

    def test_encoded_sizes(self) -> None:
        _, public_key = generate_keypair()

        assert len(public_key_to_bytes(public_key)) == 33
        assert len(public_key_to_bytes(public_key, compressed=False)) == 65

    def test_both_encodings_decode_to_same_key(self) -> None:
        _, public_key = generate_keypair()
        compressed = public_key_to_bytes(public_key)
        uncompressed = public_key_to_bytes(public_key, compressed=False)

        from_compressed = public_key_from_bytes(compressed)
        from_uncompressed = public_key_from_bytes(uncompressed)

        assert public_key_to_bytes(from_compressed) == compressed
        assert public_key_to_bytes(from_uncompressed) == compressed

    def test_wrong_length_rejected(self) -> None:
        with pytest.raises(InvalidPublicKeyError):
            public_key_from_bytes(bytes(32))

    def test_bad_prefix_rejected(self) -> None:
        encoded = bytearray.fromhex(ALICE_PUBLIC_KEY_COMPRESSED_HEX)
        encoded[0] = 0x05

        with pytest.raises(InvalidPublicKeyError):
            public_key_from_bytes(bytes(encoded))

    def test_off_curve_point_rejected(self) -> None:
        _, public_key = generate_keypair()
        encoded = bytearray(public_key_to_bytes(public_key, compressed=False))
        encoded[-1] ^= 0x01

        with pytest.raises(InvalidPublicKeyError):
            public_key_from_bytes(bytes(encoded))

    def test_coerce_accepts_objects_and_bytes(self) -> None:
        _, public_key = generate_keypair()

        assert coerce_public_key(public_key) is public_key
        assert isinstance(coerce_public_key(public_key_to_bytes(public_key)), ec.EllipticCurvePublicKey)


class TestFingerprint:
    """Tests for fingerprint generation."""

    def test_fingerprint_format(self) -> None:
        fp = fingerprint(bytes.fromhex(ALICE_PUBLIC_KEY_COMPRESSED_HEX))

        assert len(fp) == 19  # "XXXX XXXX XXXX XXXX"
        parts = fp.split(" ")
        assert len(parts) == 4
        for part in parts:
            assert len(part) == 4
            assert all(c in "0123456789ABCDEF" for c in part)

    def test_fingerprint_deterministic(self) -> None:
        key = bytes.fromhex(ALICE_PUBLIC_KEY_COMPRESSED_HEX)
        assert fingerprint(key) == fingerprint(key)

    def test_different_keys_different_fingerprints(self) -> None:
        _, key1 = generate_keypair()
        _, key2 = generate_keypair()

        assert fingerprint(public_key_to_bytes(key1)) != fingerprint(public_key_to_bytes(key2))
