"""Test vectors for PolarKey."""

# BLAKE2b-512 known answers (RFC 7693 / reference implementation)
BLAKE2B_512_EMPTY_HEX = (
    "786a02f742015903c6c6fd852552d272912f4740e15847618a86e217f71f5419"
    "d25e1031afee585313896444934eb04b903a685b1448b755d56f701afe9be2ce"
)
BLAKE2B_512_ABC_HEX = (
    "ba80a53f981c4d0d6a2797b69f12f6e94c212f14685ac4b74b12bb6fdbffa2d1"
    "7d87c5392aab792dc252d5de4533cc9518d38aa8dbf1925ab92386edd4009923"
)

# Private scalar 1: its public key is the P-256 base point
ALICE_SCALAR_HEX = "0000000000000000000000000000000000000000000000000000000000000001"
ALICE_PUBLIC_KEY_COMPRESSED_HEX = (
    "036b17d1f2e12c4247f8bce6e563a440f277037d812deb33a0f4a13945d898c296"
)

BOB_SCALAR_HEX = "c9afa9d845ba75166b5c215767b1d6934e50c3db36e89b127b8a622b120f6721"

# P-256 group order; not a valid private scalar
P256_ORDER_HEX = "ffffffff00000000ffffffffffffffffbce6faada7179e84f3b9cac2fc632551"

# Canonical request message fields
UPLOAD_ACTION = "upload"
UPLOAD_TIMESTAMP = 1700000000
UPLOAD_NONCE = 42
UPLOAD_MESSAGE = b"upload170000000042"

# Inputs straddling the 128-byte block boundary
BLOCK_BOUNDARY_LENGTHS = [0, 1, 3, 63, 64, 111, 112, 127, 128, 129, 255, 256, 257, 1000]
