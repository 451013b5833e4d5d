"""Core layer: logging, errors, YAML loading and metrics.

Sits in the middle of the diamond DAG. It depends on nothing else in
nostrchat and is used by ``nostrchat.engine`` and the CLI.

Attributes:
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrchat.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][nostrchat.core.metrics.MetricsServer].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
        See [load_yaml()][nostrchat.core.yaml.load_yaml].
    NostrChatError: Root of the exception hierarchy.
        See [nostrchat.core.exceptions][].
"""

from .exceptions import (
    ConfigurationError,
    DecryptionError,
    NostrChatError,
    PublishingError,
    RecipientNotFoundError,
    SubscriptionError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    EVENTS_DROPPED,
    EVENTS_PUBLISHED,
    EVENTS_RECEIVED,
    NOTIFICATIONS_FIRED,
    SUBSCRIPTIONS_OPEN,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "EVENTS_DROPPED",
    "EVENTS_PUBLISHED",
    "EVENTS_RECEIVED",
    "NOTIFICATIONS_FIRED",
    "SUBSCRIPTIONS_OPEN",
    "ConfigurationError",
    "DecryptionError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NostrChatError",
    "PublishingError",
    "RecipientNotFoundError",
    "StructuredFormatter",
    "SubscriptionError",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
