"""
Event hashing, signing and NIP-04 encryption.

The engine never touches key material directly. It goes through a
[CryptoProvider][nostrchat.utils.crypto.CryptoProvider]; the production
implementation [NostrSdkCrypto][nostrchat.utils.crypto.NostrSdkCrypto]
delegates the NIP-01 id hash, Schnorr signing and NIP-04 to ``nostr_sdk``.

Warning:
    Secrets are passed around as 64-char hex strings. Never log them.

Examples:
    ```python
    crypto = NostrSdkCrypto()
    secret = crypto.generate_secret_key()
    author = PublicKey.parse(crypto.derive_public_key(secret))
    unsigned = build_text_note("gm").build(author)
    event_id = crypto.event_id(unsigned)
    sig = crypto.sign(event_id, secret)
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from nostr_sdk import EventId, Keys, NostrSdkError, PublicKey, nip04_decrypt, nip04_encrypt

from nostrchat.core.exceptions import DecryptionError


if TYPE_CHECKING:
    from nostr_sdk import UnsignedEvent


def compute_event_id(unsigned: UnsignedEvent) -> str:
    """Return the NIP-01 id of *unsigned*, hashing its fields when the SDK has not yet."""
    event_id = unsigned.id()
    if event_id is None:
        event_id = EventId(
            unsigned.author(),
            unsigned.created_at(),
            unsigned.kind(),
            unsigned.tags().to_vec(),
            unsigned.content(),
        )
    return event_id.to_hex()


@runtime_checkable
class CryptoProvider(Protocol):
    """Cryptographic collaborator used by the composer and decryption gate."""

    def event_id(self, unsigned: UnsignedEvent) -> str: ...

    def sign(self, event_id: str, secret: str) -> str: ...

    def encrypt(self, plaintext: str, secret: str, recipient: str) -> str: ...

    def decrypt(self, ciphertext: str, secret: str, sender: str) -> str:
        """Return the plaintext or raise [DecryptionError][nostrchat.core.exceptions.DecryptionError]."""
        ...

    def derive_public_key(self, secret: str) -> str: ...

    def generate_secret_key(self) -> str: ...


class NostrSdkCrypto:
    """[CryptoProvider][nostrchat.utils.crypto.CryptoProvider] backed by ``nostr_sdk``.

    Parsed ``Keys`` objects are cached per secret so repeated decrypts in a
    busy inbox do not re-parse the key.
    """

    def __init__(self) -> None:
        self._keys: dict[str, Keys] = {}

    def _keys_for(self, secret: str) -> Keys:
        keys = self._keys.get(secret)
        if keys is None:
            keys = Keys.parse(secret)
            self._keys[secret] = keys
        return keys

    def event_id(self, unsigned: UnsignedEvent) -> str:
        return compute_event_id(unsigned)

    def sign(self, event_id: str, secret: str) -> str:
        return self._keys_for(secret).sign_schnorr(bytes.fromhex(event_id))

    def encrypt(self, plaintext: str, secret: str, recipient: str) -> str:
        keys = self._keys_for(secret)
        return nip04_encrypt(keys.secret_key(), PublicKey.parse(recipient), plaintext)

    def decrypt(self, ciphertext: str, secret: str, sender: str) -> str:
        keys = self._keys_for(secret)
        try:
            return nip04_decrypt(keys.secret_key(), PublicKey.parse(sender), ciphertext)
        except NostrSdkError as e:
            raise DecryptionError(str(e)) from e

    def derive_public_key(self, secret: str) -> str:
        return self._keys_for(secret).public_key().to_hex()

    def generate_secret_key(self) -> str:
        keys = Keys.generate()
        secret = keys.secret_key().to_hex()
        self._keys[secret] = keys
        return secret
