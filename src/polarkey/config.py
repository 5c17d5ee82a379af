"""Configuration for PolarKey identities."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .types import ADDRESS_LENGTH, DEFAULT_KEY_IDENTIFIER, ConfigError


ENV_KEY_ID = "POLARKEY_KEY_ID"
ENV_STORAGE_DIR = "POLARKEY_STORAGE_DIR"
ENV_PASSPHRASE = "POLARKEY_PASSPHRASE"
ENV_TIMESTAMP_SKEW = "POLARKEY_TIMESTAMP_SKEW"


@dataclass
class IdentityConfig:
    """Configuration for an Identity."""

    key_identifier: str = DEFAULT_KEY_IDENTIFIER
    """Secure store identifier of the signing key."""

    storage_dir: Path = field(default_factory=lambda: Path.home() / ".polarkey" / "keys")
    """Directory for the file secure store."""

    passphrase: Optional[str] = field(default=None, repr=False)
    """Passphrase protecting the file secure store."""

    address_length: int = ADDRESS_LENGTH
    """Address digest length in bytes. Fixed by the address scheme."""

    timestamp_skew: float = 300.0
    """Accepted clock difference, in seconds, when checking auth headers."""

    def __post_init__(self) -> None:
        if self.address_length != ADDRESS_LENGTH:
            raise ConfigError(
                f"address_length is fixed at {ADDRESS_LENGTH} bytes, got {self.address_length!r}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "IdentityConfig":
        """
        Creates configuration from POLARKEY_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ConfigError: If a numeric variable is malformed.
        """
        env = os.environ if environ is None else environ
        config = cls()

        if env.get(ENV_KEY_ID):
            config.key_identifier = env[ENV_KEY_ID]
        if env.get(ENV_STORAGE_DIR):
            config.storage_dir = Path(env[ENV_STORAGE_DIR]).expanduser()
        if env.get(ENV_PASSPHRASE):
            config.passphrase = env[ENV_PASSPHRASE]
        if env.get(ENV_TIMESTAMP_SKEW):
            try:
                config.timestamp_skew = float(env[ENV_TIMESTAMP_SKEW])
            except ValueError as e:
                raise ConfigError(
                    f"{ENV_TIMESTAMP_SKEW} must be a number, got {env[ENV_TIMESTAMP_SKEW]!r}"
                ) from e
            if config.timestamp_skew < 0:
                raise ConfigError(f"{ENV_TIMESTAMP_SKEW} must not be negative")

        return config
