"""Nostr key management utilities for nostrchat.

Loads the signing identity from an environment variable or the session
store, generating and persisting a fresh one on first use, and parses
user-typed public keys (``npub1...`` bech32 or 64-char hex).

Warning:
    Private keys must **never** be stored in configuration files or logged.
    Use the ``PRIVATE_KEY`` environment variable or the session store.

Note:
    [KeysConfig][nostrchat.utils.keys.KeysConfig] loads the environment key
    eagerly at config validation time so a malformed key fails at startup.
    Unlike a service key it is optional: without it the client falls back to
    [load_identity()][nostrchat.utils.keys.load_identity].

Examples:
    ```python
    import os

    os.environ["PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("PRIVATE_KEY")
    print(keys.public_key().to_bech32())
    ```
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nostr_sdk import Keys, NostrSdkError, PublicKey
from pydantic import BaseModel, Field, model_validator


if TYPE_CHECKING:
    from .crypto import CryptoProvider
    from .storage import KeyValueStore


logger = logging.getLogger(__name__)

ENV_PRIVATE_KEY = "PRIVATE_KEY"  # pragma: allowlist secret  # Default env var name
STORE_PRIVATE_KEY = "nostrPrivateKey"  # pragma: allowlist secret


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable containing the private key
            (nsec1 bech32 or 64-char hex).

    Raises:
        ValueError: If the environment variable is not set or is empty.
        nostr_sdk.NostrSdkError: If the key value is malformed.
    """
    value = os.getenv(env_var)

    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )

    return Keys.parse(value)


class KeysConfig(BaseModel):
    """Pydantic model that loads optional Nostr keys from an environment variable.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys``, or ``None`` when the variable is unset.

    Warning:
        The ``keys`` field contains a live private key. Do not serialize this
        model. ``arbitrary_types_allowed`` is required because
        ``nostr_sdk.Keys`` is a Rust-backed FFI type.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys | None = Field(default=None, description="Keys loaded from keys_env, if set")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Populate ``keys`` from the environment variable when it is set."""
        if data is None:
            data = {}
        if isinstance(data, dict) and "keys" not in data:
            env_var = data.get("keys_env", ENV_PRIVATE_KEY)
            if os.getenv(env_var):
                data = {**data, "keys": load_keys_from_env(env_var)}
        return data

    @property
    def secret_hex(self) -> str | None:
        return self.keys.secret_key().to_hex() if self.keys is not None else None


def parse_public_key(text: str) -> str | None:
    """Parse an ``npub1...`` or hex public key into lowercase hex, or ``None``."""
    candidate = text.strip()
    if not candidate:
        return None
    try:
        return PublicKey.parse(candidate).to_hex()
    except NostrSdkError:
        return None


def to_npub(pubkey: str) -> str:
    """Encode a hex public key as bech32 ``npub1...``."""
    return PublicKey.parse(pubkey).to_bech32()


@dataclass(frozen=True, slots=True)
class Identity:
    """The signed-in identity.

    Attributes:
        pubkey: Public key (hex), the viewer in every access decision.
        secret: Private key (hex). Excluded from ``repr``.
    """

    pubkey: str
    secret: str = field(repr=False)


def load_identity(
    store: KeyValueStore,
    crypto: CryptoProvider,
    secret: str | None = None,
) -> Identity:
    """Resolve the identity: explicit *secret*, else stored key, else a new one.

    A generated key is written to *store* under ``nostrPrivateKey`` so the
    next session reuses it. An explicit *secret* is never written.
    """
    if secret is None:
        secret = store.get(STORE_PRIVATE_KEY)
        if secret is None:
            secret = crypto.generate_secret_key()
            store.set(STORE_PRIVATE_KEY, secret)
            logger.info("identity_generated")
    identity = Identity(pubkey=crypto.derive_public_key(secret), secret=secret)
    logger.debug("identity_loaded pubkey=%s", identity.pubkey)
    return identity
