"""
Fail-closed decryption gate for kind-4 direct messages.

Every message-bearing event passes through
[DecryptionGate.open()][nostrchat.engine.decryption.DecryptionGate.open]
before it can reach a message list:

1. Non-DM kinds pass through with their content unchanged.
2. A DM whose ``p`` tag is missing or duplicated is malformed and dropped.
3. A DM where the viewer is neither author nor recipient is out of scope and
   dropped *before* any decrypt call.
4. An in-scope DM is decrypted with the counterparty key (the recipient when
   the viewer wrote it, the author otherwise). Failure drops it.

Dropped events never produce a visible message; only counters and debug
logs record them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nostrchat.core.exceptions import DecryptionError
from nostrchat.core.metrics import EVENTS_DROPPED
from nostrchat.models.constants import EventKind
from nostrchat.models.message import Message
from nostrchat.nips.nip04 import dm_counterparty


if TYPE_CHECKING:
    from nostrchat.models.event import Event
    from nostrchat.utils.crypto import CryptoProvider
    from nostrchat.utils.keys import Identity


logger = logging.getLogger(__name__)


class DecryptionGate:
    """Authorization gate plus decryption for the viewing identity.

    Args:
        identity: The viewer; its key is the only key ever used to decrypt.
        crypto: [CryptoProvider][nostrchat.utils.crypto.CryptoProvider].
    """

    def __init__(self, identity: Identity, crypto: CryptoProvider) -> None:
        self._identity = identity
        self._crypto = crypto

    @property
    def viewer(self) -> str:
        return self._identity.pubkey

    def in_scope(self, event: Event) -> bool:
        """Whether the viewer may decrypt *event*. Malformed DMs are never in scope."""
        try:
            return dm_counterparty(event, self.viewer) is not None
        except ValueError:
            return False

    def open(self, event: Event) -> Message | None:
        """Materialize *event* as a [Message][nostrchat.models.message.Message], or ``None`` to drop it."""
        if event.kind != EventKind.ENCRYPTED_DM:
            return Message.from_event(event)

        try:
            counterparty = dm_counterparty(event, self.viewer)
        except ValueError as e:
            EVENTS_DROPPED.labels(reason="malformed").inc()
            logger.debug("dm_malformed id=%s error=%s", event.id, e)
            return None

        if counterparty is None:
            EVENTS_DROPPED.labels(reason="out_of_scope").inc()
            return None

        try:
            plaintext = self._crypto.decrypt(event.content, self._identity.secret, counterparty)
        except DecryptionError as e:
            EVENTS_DROPPED.labels(reason="undecryptable").inc()
            logger.debug("dm_decrypt_failed id=%s error=%s", event.id, e)
            return None

        return Message.from_event(event, content=plaintext)
