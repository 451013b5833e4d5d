"""Direct-message notification dedup.

Several relays echo the same event, and reopened subscriptions replay stored
ones. [NotificationPolicy][nostrchat.engine.notifications.NotificationPolicy]
guarantees a given DM notifies at most once while bounding memory over a long
session: ids live in an insertion-ordered set, and once it grows past
``capacity`` the oldest half is evicted in one pass.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from nostrchat.models.constants import EventKind


if TYPE_CHECKING:
    from nostrchat.models.message import Message


logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """User-visible notification sink."""

    def notify(self, title: str, body: str, message_id: str) -> None: ...


class LogNotifier:
    """[Notifier][nostrchat.engine.notifications.Notifier] that writes an info log line."""

    def notify(self, title: str, body: str, message_id: str) -> None:
        logger.info("notification title=%r body=%r id=%s", title, body, message_id)


class NotificationPolicy:
    """Bounded set of already-notified event ids.

    Args:
        capacity: Size beyond which the oldest half of the ids is evicted.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 2:  # noqa: PLR2004
            raise ValueError("capacity must be at least 2")
        self._capacity = capacity
        self._seen: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._seen

    def should_notify(self, message: Message, viewer: str) -> bool:
        """Return ``True`` once per incoming DM id not authored by *viewer*.

        A ``True`` result records the id, so the caller must either notify
        or deliberately skip (for instance while the UI is visible).
        """
        if message.kind != EventKind.ENCRYPTED_DM or message.pubkey == viewer:
            return False
        if message.id in self._seen:
            return False
        self._seen[message.id] = None
        if len(self._seen) > self._capacity:
            self._trim()
        return True

    def _trim(self) -> None:
        for _ in range(len(self._seen) // 2):
            self._seen.popitem(last=False)
        logger.debug("notified_ids_trimmed remaining=%d", len(self._seen))
