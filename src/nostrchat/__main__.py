"""CLI entry point for the nostrchat engine.

Runs the engine headless against the configured relays. ``listen`` keeps the
global feed, directory and presence contexts open and logs every message as
it is materialized; the other commands perform one action and exit.

Examples:
    ```bash
    python -m nostrchat listen
    python -m nostrchat send "hello relays"
    python -m nostrchat send "@alice@example.com hi"
    python -m nostrchat send --channel <channel id> "gm"
    python -m nostrchat channel-create "nostr-dev" --about "protocol chat"
    python -m nostrchat relays --log-level DEBUG
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from nostrchat.core import start_metrics_server
from nostrchat.core.exceptions import (
    ConfigurationError,
    NostrChatError,
    PublishingError,
    RecipientNotFoundError,
)
from nostrchat.core.logger import Logger, StructuredFormatter
from nostrchat.core.yaml import load_yaml
from nostrchat.engine import ChatClient, ClientConfig
from nostrchat.models import Context, Message
from nostrchat.utils.keys import parse_public_key, to_npub


DEFAULT_CONFIG = Path("config") / "client.yaml"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="nostrchat",
        description="nostrchat realtime chat engine",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Client config path (default: {DEFAULT_CONFIG})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit CLI log lines as JSON objects",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("listen", help="Stream the global feed until interrupted")

    send = commands.add_parser("send", help="Publish a message")
    send.add_argument("text", help="Message text; '@name ...' sends a direct message")
    target = send.add_mutually_exclusive_group()
    target.add_argument("--channel", help="Channel id to post in")
    target.add_argument("--peer", help="npub or hex key of the direct message recipient")

    create = commands.add_parser("channel-create", help="Create a public channel")
    create.add_argument("name", help="Channel name")
    create.add_argument("--about", help="Channel description")
    create.add_argument("--picture", help="Channel picture URL")

    commands.add_parser("relays", help="Show relay connection status")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that output
    from ``Logger`` and from plain ``logging.getLogger()`` calls in the
    lower layers shares the ``level name message key=value ...`` layout.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def load_config(path: Path, logger: Logger) -> ClientConfig:
    """Load *path*, falling back to defaults when the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return ClientConfig()
    return ClientConfig.from_dict(load_yaml(path))


# =============================================================================
# Commands
# =============================================================================


async def listen(config: ClientConfig, logger: Logger) -> int:
    """Stream messages until SIGINT or SIGTERM."""
    stop = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    metrics_server = await start_metrics_server(config.metrics)
    if config.metrics.enabled:
        logger.info(
            "metrics_server_started",
            host=config.metrics.host,
            port=config.metrics.port,
            path=config.metrics.path,
        )

    client: ChatClient

    def on_message(context: Context, message: Message) -> None:
        logger.info(
            "message",
            context=context.key,
            author=client.label(message.pubkey),
            private=message.is_private,
            content=message.content,
        )

    client = ChatClient.from_config(config, on_message=on_message)
    client.set_visible(False)
    logger.info("identity", npub=to_npub(client.pubkey))
    try:
        async with client:
            await client.open(Context.global_feed())
            await client.open(Context.directory())
            await client.open(Context.presence())
            await stop.wait()
        return 0
    finally:
        await metrics_server.stop()
        if config.metrics.enabled:
            logger.info("metrics_server_stopped")


async def send(  # noqa: PLR0913
    config: ClientConfig,
    logger: Logger,
    text: str,
    *,
    channel: str | None = None,
    peer: str | None = None,
) -> int:
    """Publish one message in the global feed, a channel or a direct conversation."""
    context = None
    if channel is not None:
        context = Context.channel(channel)
    elif peer is not None:
        pubkey = parse_public_key(peer)
        if pubkey is None:
            logger.error("invalid_peer", peer=peer)
            return 2
        context = Context.direct(pubkey)

    async with ChatClient.from_config(config) as client:
        try:
            result = await client.send_text(text, context)
        except RecipientNotFoundError as e:
            logger.error("recipient_not_found", identifier=e.identifier)
            return 1
        except PublishingError as e:
            logger.error("publish_failed", event_id=e.event_id, failed=e.failed)
            return 1
    logger.info("sent", event_id=result.event_id, accepted=len(result.accepted))
    return 0


async def channel_create(
    config: ClientConfig,
    logger: Logger,
    name: str,
    *,
    about: str | None = None,
    picture: str | None = None,
) -> int:
    async with ChatClient.from_config(config) as client:
        try:
            result = await client.create_channel(name, about, picture)
        except PublishingError as e:
            logger.error("publish_failed", event_id=e.event_id, failed=e.failed)
            return 1
    logger.info("channel_created", channel_id=result.event_id, name=name)
    return 0


async def relays(config: ClientConfig, logger: Logger) -> int:
    """Connect through the presence context and report each relay's state."""
    async with ChatClient.from_config(config) as client:
        await client.open(Context.presence())
        status = await client.relay_status()
    for url, connected in status.relays.items():
        logger.info("relay", url=url, connected=connected)
    logger.info("relay_status", connected=status.connected, total=status.total)
    return 0 if status.connected else 1


# =============================================================================
# Entry Point
# =============================================================================


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, load config and run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = Logger("cli", json_output=args.json_logs)

    try:
        config = load_config(args.config, logger)
        match args.command:
            case "listen":
                return await listen(config, logger)
            case "send":
                return await send(config, logger, args.text, channel=args.channel, peer=args.peer)
            case "channel-create":
                return await channel_create(
                    config, logger, args.name, about=args.about, picture=args.picture
                )
            case "relays":
                return await relays(config, logger)
            case _:
                logger.error("unknown_command", command=args.command)
                return 2
    except ConfigurationError as e:
        logger.error("config_invalid", error=str(e))
        return 2
    except ValueError as e:
        logger.error("invalid_input", error=str(e))
        return 2
    except NostrChatError as e:
        logger.error("command_failed", command=args.command, error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
