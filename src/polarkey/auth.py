"""
Request authentication for PolarKey.

Every privileged API call carries the signer's address, public key and a
signature over the canonical message:

    message = action + str(timestamp) + str(nonce)

concatenated with no separators and UTF-8 encoded. The server rebuilds the
same string and checks the signature, so the convention must not change.
"""

import base64
import binascii
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from .signer import Signer, derive_address, normalize_address, verify_signature
from .types import InvalidHeadersError, PolarKeyError


logger = logging.getLogger(__name__)


# Header names
HEADER_ADDRESS = "X-Sui-Address"
HEADER_PUBLIC_KEY = "X-Sui-Public-Key"
HEADER_SIGNATURE = "X-Sui-Signature"
HEADER_ACTION = "X-Sui-Action"
HEADER_TIMESTAMP = "X-Sui-Timestamp"
HEADER_NONCE = "X-Sui-Nonce"

# Nonces are drawn from [1, MAX_NONCE]
MAX_NONCE = 2**63 - 1


def _check_int(name: str, value: object, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def build_message(action: str, timestamp: int, nonce: int) -> bytes:
    """
    Build the canonical signed message for a request.

    Args:
        action: Short verb naming the operation (e.g. "upload")
        timestamp: Unix time in seconds
        nonce: Random positive integer

    Returns:
        UTF-8 bytes of action + timestamp + nonce

    Raises:
        ValueError: If action is empty, timestamp is negative or nonce is
            not positive
    """
    if not action:
        raise ValueError("action must not be empty")
    _check_int("timestamp", timestamp, 0)
    _check_int("nonce", nonce, 1)
    return f"{action}{timestamp}{nonce}".encode("utf-8")


def generate_nonce() -> int:
    """Return a random nonce in [1, 2**63 - 1] from the OS CSPRNG."""
    return secrets.randbelow(MAX_NONCE) + 1


@dataclass(frozen=True)
class AuthHeaders:
    """Authentication fields attached to an outgoing request."""

    sui_address: str
    public_key_b64: str
    signature_b64: str
    action: str
    timestamp: int
    nonce: int

    @property
    def message(self) -> bytes:
        """The canonical message these headers sign."""
        return build_message(self.action, self.timestamp, self.nonce)

    def to_headers(self) -> Dict[str, str]:
        """Render as HTTP header fields."""
        return {
            HEADER_ADDRESS: self.sui_address,
            HEADER_PUBLIC_KEY: self.public_key_b64,
            HEADER_SIGNATURE: self.signature_b64,
            HEADER_ACTION: self.action,
            HEADER_TIMESTAMP: str(self.timestamp),
            HEADER_NONCE: str(self.nonce),
        }

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "AuthHeaders":
        """
        Parse authentication fields from HTTP headers (names are case-insensitive).

        Raises:
            InvalidHeadersError: If a field is missing or a number is malformed.
        """
        lowered = {key.lower(): value for key, value in headers.items()}

        def field(name: str) -> str:
            value = lowered.get(name.lower())
            if value is None or value == "":
                raise InvalidHeadersError(f"Missing header: {name}")
            return value

        def number(name: str) -> int:
            text = field(name)
            if not (text.isascii() and text.isdigit()):
                raise InvalidHeadersError(f"Header {name} is not a decimal integer: {text!r}")
            return int(text)

        return cls(
            sui_address=field(HEADER_ADDRESS),
            public_key_b64=field(HEADER_PUBLIC_KEY),
            signature_b64=field(HEADER_SIGNATURE),
            action=field(HEADER_ACTION),
            timestamp=number(HEADER_TIMESTAMP),
            nonce=number(HEADER_NONCE),
        )


def verify_headers(
    auth: AuthHeaders,
    max_skew: Optional[float] = None,
    now: Optional[float] = None,
) -> bool:
    """
    Check authentication fields the way the server does.

    The address must derive from the public key, and the signature must
    cover the canonical message. With max_skew set, the timestamp must also
    be within max_skew seconds of now.

    Returns:
        True if every check passes, False otherwise
    """
    try:
        public_key = base64.b64decode(auth.public_key_b64, validate=True)
        signature = base64.b64decode(auth.signature_b64, validate=True)
        message = auth.message
        if derive_address(public_key) != normalize_address(auth.sui_address):
            return False
    except (binascii.Error, ValueError, PolarKeyError):
        return False

    if max_skew is not None:
        current = time.time() if now is None else now
        if abs(current - auth.timestamp) > max_skew:
            return False

    return verify_signature(signature, message, public_key)


class RequestAuthenticator:
    """
    Builds signed AuthHeaders for outgoing requests.

    Example usage:
        ```python
        authenticator = RequestAuthenticator(signer)
        headers = authenticator.authenticate("upload").to_headers()
        ```
    """

    def __init__(
        self,
        signer: Signer,
        clock: Callable[[], float] = time.time,
        nonce_source: Callable[[], int] = generate_nonce,
    ) -> None:
        self._signer = signer
        self._clock = clock
        self._nonce_source = nonce_source

    def authenticate(
        self,
        action: str,
        timestamp: Optional[int] = None,
        nonce: Optional[int] = None,
    ) -> AuthHeaders:
        """
        Sign a request for an action.

        Args:
            action: Short verb naming the operation
            timestamp: Unix seconds (defaults to now)
            nonce: Positive integer (defaults to a fresh random nonce)

        Raises:
            KeyNotFoundError: If no key is loaded.
            ValueError: If the message fields are invalid.
        """
        if timestamp is None:
            timestamp = int(self._clock())
        if nonce is None:
            nonce = self._nonce_source()

        result = self._signer.sign(build_message(action, timestamp, nonce))

        # Address comes from the key that produced the signature
        auth = AuthHeaders(
            sui_address=derive_address(result.public_key),
            public_key_b64=base64.b64encode(result.public_key).decode("ascii"),
            signature_b64=result.signature_b64,
            action=action,
            timestamp=timestamp,
            nonce=nonce,
        )
        logger.debug("Signed %s request for %s", action, auth.sui_address)
        return auth
