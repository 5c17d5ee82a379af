"""
Identity handle for PolarKey.

An Identity bundles the KeyStore, Signer and RequestAuthenticator of one
account. Create it once and pass it to whatever needs to sign; there is no
process-wide instance.
"""

import asyncio
import base64
import logging
from typing import Optional

from .auth import AuthHeaders, RequestAuthenticator, verify_headers
from .config import IdentityConfig
from .keys import fingerprint
from .keystore import KeyState, KeyStore
from .signer import MessageLike, PublicKeyLike, SignatureResult, Signer
from .storage import FileSecureStore, SecureStore


logger = logging.getLogger(__name__)


class Identity:
    """
    The signing identity of this device.

    Example usage:
        ```python
        identity = Identity(IdentityConfig.from_env())
        address = identity.setup()

        headers = identity.authenticate("upload").to_headers()
        ```

    Blocking methods run on the calling thread; the *_async variants run the
    same call in a worker thread and raise its errors unchanged.
    """

    def __init__(
        self,
        config: Optional[IdentityConfig] = None,
        store: Optional[SecureStore] = None,
    ) -> None:
        """
        Create an identity and load any stored key.

        Args:
            config: Identity configuration (defaults apply if omitted).
            store: Secure store to use. Defaults to a FileSecureStore in
                   config.storage_dir protected by config.passphrase.

        Raises:
            SecureStoreError: If the store cannot be read (for the default
                store, PasswordRequiredError when no passphrase is configured).
        """
        self._config = config or IdentityConfig()
        if store is None:
            store = FileSecureStore(
                passphrase=self._config.passphrase,
                directory=self._config.storage_dir,
            )
        self._keystore = KeyStore(store, self._config.key_identifier)
        self._signer = Signer(self._keystore)
        self._authenticator = RequestAuthenticator(self._signer)

        self._keystore.load_existing()

    @property
    def config(self) -> IdentityConfig:
        return self._config

    @property
    def keystore(self) -> KeyStore:
        return self._keystore

    @property
    def signer(self) -> Signer:
        return self._signer

    @property
    def state(self) -> KeyState:
        return self._keystore.state

    @property
    def has_key(self) -> bool:
        return self._keystore.has_key

    @property
    def address(self) -> str:
        """Address of the loaded key. Raises KeyNotFoundError without one."""
        return self._signer.address()

    @property
    def public_key(self) -> bytes:
        """Compressed SEC1 public key. Raises KeyNotFoundError without one."""
        return self._signer.public_key_bytes()

    @property
    def public_key_b64(self) -> str:
        return base64.b64encode(self.public_key).decode("ascii")

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.public_key)

    def setup(self) -> str:
        """
        Make sure a signing key exists, generating one on first use.

        Returns:
            The account address.
        """
        address = self._signer.generate_address(self._keystore.ensure_key())
        logger.info("Identity ready: %s", address)
        return address

    def generate_address(self, public_key: Optional[PublicKeyLike] = None) -> str:
        return self._signer.generate_address(public_key)

    def sign(self, message: MessageLike) -> SignatureResult:
        return self._signer.sign(message)

    def verify(
        self,
        signature: bytes,
        message: MessageLike,
        public_key: Optional[PublicKeyLike] = None,
    ) -> bool:
        return self._signer.verify(signature, message, public_key)

    def authenticate(
        self,
        action: str,
        timestamp: Optional[int] = None,
        nonce: Optional[int] = None,
    ) -> AuthHeaders:
        """Build signed auth headers for a request."""
        return self._authenticator.authenticate(action, timestamp, nonce)

    def check_headers(self, auth: AuthHeaders, now: Optional[float] = None) -> bool:
        """Verify auth headers using the configured timestamp skew."""
        return verify_headers(auth, max_skew=self._config.timestamp_skew, now=now)

    def export_private_key(self, confirm: bool = False) -> str:
        """See KeyStore.export_private_key. The result controls the account."""
        return self._keystore.export_private_key(confirm=confirm)

    def import_private_key(self, encoded: str) -> str:
        """
        Replace the signing key with an exported one.

        Returns:
            The address of the imported key.
        """
        self._keystore.import_private_key(encoded)
        return self.address

    def regenerate(self, confirm: bool = False) -> str:
        """
        Replace the signing key with a new one.

        Returns:
            The new address. The old one is no longer usable from this device.
        """
        old_address = self.address if self._keystore.has_key else None
        self._keystore.regenerate(confirm=confirm)
        address = self.address
        logger.info("Regenerated identity %s -> %s", old_address, address)
        return address

    def reset(self) -> None:
        """Delete the signing key."""
        self._keystore.delete()

    async def setup_async(self) -> str:
        return await asyncio.to_thread(self.setup)

    async def sign_async(self, message: MessageLike) -> SignatureResult:
        return await asyncio.to_thread(self.sign, message)

    async def import_private_key_async(self, encoded: str) -> str:
        return await asyncio.to_thread(self.import_private_key, encoded)

    async def authenticate_async(
        self,
        action: str,
        timestamp: Optional[int] = None,
        nonce: Optional[int] = None,
    ) -> AuthHeaders:
        return await asyncio.to_thread(self.authenticate, action, timestamp, nonce)
