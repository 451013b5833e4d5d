"""
Prometheus metrics collection and HTTP exposition.

Defines module-level metric objects (singletons, thread-safe) recorded by the
router, the decryption gate and the composer. A long-running ``listen`` CLI
session can expose them for scraping through
[MetricsServer][nostrchat.core.metrics.MetricsServer], configured with
[MetricsConfig][nostrchat.core.metrics.MetricsConfig].

Architecture:
    EVENTS_RECEIVED:       Raw events delivered by the transport, by kind.
    EVENTS_DROPPED:        Events discarded at ingestion, by reason.
    EVENTS_PUBLISHED:      Outgoing events, by outcome.
    SUBSCRIPTIONS_OPEN:    Live transport subscriptions across all contexts.
    NOTIFICATIONS_FIRED:   Direct-message notifications delivered to the notifier.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Serve the metrics endpoint")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Ingestion and Publishing Metrics
#
# Drop reasons:
#   duplicate, malformed, out_of_scope, undecryptable, closed_context
# Publish outcomes:
#   accepted, rejected
# ---------------------------------------------------------------------------

EVENTS_RECEIVED = Counter(
    "nostrchat_events_received",
    "Events delivered by relays",
    ["kind"],
)

EVENTS_DROPPED = Counter(
    "nostrchat_events_dropped",
    "Events discarded before reaching a reducer",
    ["reason"],
)

EVENTS_PUBLISHED = Counter(
    "nostrchat_events_published",
    "Outgoing events by publish outcome",
    ["outcome"],
)

SUBSCRIPTIONS_OPEN = Gauge(
    "nostrchat_subscriptions_open",
    "Live transport subscriptions across all open contexts",
)

NOTIFICATIONS_FIRED = Counter(
    "nostrchat_notifications_fired",
    "Direct-message notifications handed to the notifier",
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... client runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start listening for scrape requests (no-op when disabled).

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Stop the HTTP server. Safe to call when it was never started."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a metrics server; the caller stops it on shutdown."""
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
