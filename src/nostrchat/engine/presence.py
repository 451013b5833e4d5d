"""
Typing presence: outgoing pulse scheduling and incoming expiry.

Typing pulses (kind 20) are advisory and self-expiring. There is no "stopped
typing" event; silence for longer than the TTL is the only stop signal.
Presence therefore lives in its own TTL cache instead of a message list.

Both classes are clock-driven state machines with no I/O: callers pass the
current time (or inject a clock), which keeps them deterministic under test.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Callable


class TypingTracker:
    """Incoming pulses: who is typing right now.

    Args:
        ttl: Seconds a pulse keeps its author marked as typing.
        clock: Time source in seconds.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.time) -> None:
        self._ttl = ttl
        self._clock = clock
        self._expires: dict[str, float] = {}

    def observe(self, pubkey: str, created_at: int | None = None) -> bool:
        """Mark *pubkey* typing until ``now + ttl``.

        A pulse whose declared ``created_at`` is already older than the TTL
        (a relay replay) is ignored. Returns whether the pulse was applied.
        """
        now = self._clock()
        if created_at is not None and created_at + self._ttl < now:
            return False
        self._expires[pubkey] = now + self._ttl
        return True

    def _expire(self, now: float) -> None:
        for pubkey in [p for p, until in self._expires.items() if until <= now]:
            del self._expires[pubkey]

    def is_typing(self, pubkey: str) -> bool:
        self._expire(self._clock())
        return pubkey in self._expires

    def active(self) -> tuple[str, ...]:
        """Authors currently typing, ordered by pubkey."""
        self._expire(self._clock())
        return tuple(sorted(self._expires))


class TypingPulser:
    """Outgoing pulses: debounce keystrokes, throttle publishes.

    The first keystroke after a pulse opens a burst. The next pulse is due
    ``debounce`` seconds after the burst opened, but never sooner than
    ``throttle`` seconds after the previous pulse. Further keystrokes within
    a pending burst do not move the deadline, so continuous typing yields
    one pulse per ``throttle`` interval.

    Args:
        debounce: Seconds to coalesce a keystroke burst.
        throttle: Minimum seconds between two pulses.
    """

    def __init__(self, debounce: float, throttle: float) -> None:
        self._debounce = debounce
        self._throttle = throttle
        self._burst_started: float | None = None
        self._last_sent: float | None = None

    @property
    def pending(self) -> bool:
        return self._burst_started is not None

    def due_at(self) -> float | None:
        """When the pending pulse may be sent, or ``None`` if nothing is pending."""
        if self._burst_started is None:
            return None
        due = self._burst_started + self._debounce
        if self._last_sent is not None:
            due = max(due, self._last_sent + self._throttle)
        return due

    def on_keystroke(self, now: float) -> float:
        """Register a keystroke at *now*; returns when the pulse is due."""
        if self._burst_started is None:
            self._burst_started = now
        due = self.due_at()
        assert due is not None  # noqa: S101
        return due

    def poll(self, now: float) -> bool:
        """Return ``True`` (and consume the burst) if a pulse should be sent at *now*."""
        due = self.due_at()
        if due is None or now < due:
            return False
        self._burst_started = None
        self._last_sent = now
        return True

    def reset(self) -> None:
        """Drop a pending burst, e.g. after the message was sent."""
        self._burst_started = None
