"""Client configuration models.

[ClientConfig][nostrchat.engine.config.ClientConfig] is loaded from YAML with
[from_yaml()][nostrchat.engine.config.ClientConfig.from_yaml]. Every field
has a default, so an empty file (or none at all) yields a working client
against the default relay set.

Examples:
    ```yaml
    relays:
      - wss://relay.damus.io
      - wss://nos.lol
    limits:
      feed_limit: 200
    presence:
      typing_ttl: 3.0
    metrics:
      enabled: true
      port: 8001
    ```

See Also:
    [ChatClient.from_config()][nostrchat.engine.client.ChatClient.from_config]:
        Wires a client from this model.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from nostrchat.core.exceptions import ConfigurationError
from nostrchat.core.metrics import MetricsConfig
from nostrchat.core.yaml import load_yaml
from nostrchat.utils.keys import KeysConfig


DEFAULT_RELAYS = (
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.nostr.band",
)


class LimitsConfig(BaseModel):
    """Subscription size bounds.

    See Also:
        [SubscriptionRouter.filters_for()][nostrchat.engine.router.SubscriptionRouter.filters_for]:
            Applies these limits to each context's filters.
    """

    feed_limit: int = Field(
        default=100, ge=1, le=5000, description="Stored events replayed for feeds and DMs"
    )
    channel_limit: int = Field(
        default=200, ge=1, le=5000, description="Stored events replayed per channel"
    )
    thread_limit: int = Field(
        default=100, ge=1, le=5000, description="Stored replies replayed per thread"
    )
    unified_channel_cap: int = Field(
        default=20, ge=1, le=256, description="Channels included in the unified feed filter"
    )
    directory_batch: int = Field(
        default=100, ge=1, le=1000, description="Authors per profile directory request"
    )
    seen_capacity: int = Field(
        default=5000,
        ge=2,
        le=1_000_000,
        description="Event ids remembered per open context to drop relay duplicates",
    )


class PresenceConfig(BaseModel):
    """Typing indicator timings, in seconds."""

    window: int = Field(
        default=5, ge=1, le=300, description="Recency window for the presence subscription"
    )
    typing_ttl: float = Field(
        default=3.0, gt=0.0, le=60.0, description="How long a received pulse marks a user typing"
    )
    typing_debounce: float = Field(
        default=0.5, ge=0.0, le=10.0, description="Keystroke coalescing interval"
    )
    typing_throttle: float = Field(
        default=2.5, gt=0.0, le=60.0, description="Minimum interval between published pulses"
    )

    @model_validator(mode="after")
    def _throttle_below_ttl(self) -> Self:
        if self.typing_throttle > self.typing_ttl:
            raise ValueError("typing_throttle must not exceed typing_ttl")
        return self


class NotificationsConfig(BaseModel):
    capacity: int = Field(
        default=1000, ge=2, le=1_000_000, description="Notified ids kept before trimming"
    )


class TimeoutsConfig(BaseModel):
    publish: float = Field(default=10.0, ge=0.5, le=120.0, description="Publish round trip")
    subscribe: float = Field(default=10.0, ge=0.5, le=120.0, description="Subscription setup")
    nip05: float = Field(default=5.0, ge=0.5, le=60.0, description="NIP-05 HTTP lookup")


class ClientConfig(BaseModel):
    """Top-level client configuration.

    Attributes:
        relays: Relay URLs (``ws://`` or ``wss://``), deduplicated in order.
        storage_path: JSON file for the session store. ``None`` keeps state in memory.
        limits: [LimitsConfig][nostrchat.engine.config.LimitsConfig].
        presence: [PresenceConfig][nostrchat.engine.config.PresenceConfig].
        notifications: [NotificationsConfig][nostrchat.engine.config.NotificationsConfig].
        timeouts: [TimeoutsConfig][nostrchat.engine.config.TimeoutsConfig].
        keys: [KeysConfig][nostrchat.utils.keys.KeysConfig], optional identity from env.
        metrics: [MetricsConfig][nostrchat.core.metrics.MetricsConfig].
    """

    relays: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS), min_length=1)
    storage_path: Path | None = Field(default=None, description="Session store JSON file")
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    keys: KeysConfig = Field(default_factory=KeysConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("relays", mode="after")
    @classmethod
    def validate_relays(cls, v: list[str]) -> list[str]:
        """Require ws/wss URLs with a host; strip trailing slashes and duplicates."""
        cleaned: dict[str, None] = {}
        for url in v:
            parsed = urlparse(url.strip())
            if parsed.scheme not in ("ws", "wss") or not parsed.netloc:
                raise ValueError(f"Invalid relay URL: {url!r} (expected ws:// or wss://)")
            cleaned[url.strip().rstrip("/")] = None
        return list(cleaned)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Validate *data*, raising [ConfigurationError][nostrchat.core.exceptions.ConfigurationError]."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> Self:
        """Load and validate a YAML configuration file.

        Delegates to [load_yaml()][nostrchat.core.yaml.load_yaml].
        """
        return cls.from_dict(load_yaml(config_path))
