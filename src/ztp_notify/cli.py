"""ztp-notify CLI.

Developer tooling around the notification channel.

Usage:
    ztp-notify listen                          # Print events as JSON lines
    ztp-notify listen --kind device_discovered # Only some kinds
    ztp-notify serve --port 8080               # Run a notification hub
    ztp-notify emit device_online --payload '{"mac": "aa:bb:cc:dd:ee:ff"}'
    ztp-notify health                          # Check a running hub
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
import httpx

from .client import create_notification_client
from .config import DEFAULT_BASE_URL, NotificationConfig
from .events import EventKind, NotificationEvent

logger = logging.getLogger(__name__)

KIND_CHOICES = [kind.value for kind in EventKind]

url_option = click.option(
    "--url",
    "base_url",
    envvar="ZTP_API_URL",
    default=DEFAULT_BASE_URL,
    show_default=True,
    help="API base URL",
)


def configure_logging(level: str) -> None:
    """Send logging to stderr so stdout stays clean for event output."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (logs go to stderr)",
)
def main(log_level: str) -> None:
    """ZTP notification channel tools."""
    configure_logging(log_level)


# =============================================================================
# Client Commands
# =============================================================================


@main.command()
@url_option
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice(KIND_CHOICES),
    help="Only print these event kinds (repeatable)",
)
@click.option(
    "--max-attempts",
    type=int,
    default=None,
    help="Reconnect attempts before giving up (0 = never give up)",
)
def listen(base_url: str, kinds: tuple[str, ...], max_attempts: int | None) -> None:
    """Connect and print every notification as a JSON line.

    Exits with status 1 if the client gives up reconnecting.

    Examples:

        ztp-notify listen --url http://ztp.local:8080/api

        ztp-notify listen --kind device_discovered --kind config_pulled
    """
    config = NotificationConfig.from_env(base_url=base_url)
    if max_attempts is not None:
        config.max_attempts = None if max_attempts == 0 else max_attempts

    try:
        config.validate()
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    click.echo(f"Listening for notifications from {base_url}", err=True)
    try:
        gave_up = asyncio.run(_listen(config, kinds))
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
        return

    if gave_up:
        click.echo("Gave up reconnecting", err=True)
        sys.exit(1)


async def _listen(config: NotificationConfig, kinds: tuple[str, ...]) -> bool:
    """Run the client until it gives up. Returns True on give-up."""
    client = create_notification_client(config=config)
    stopped = asyncio.Event()

    def print_event(event: NotificationEvent) -> None:
        click.echo(event.to_json())

    if kinds:
        for kind in kinds:
            client.on(kind, print_event)
    else:
        client.on_any(print_event)

    client.on_give_up(stopped.set)
    client.on_state_change(
        lambda old, new: click.echo(f"[{old.value} -> {new.value}]", err=True)
    )

    async with client:
        await stopped.wait()
    return True


@main.command()
@click.argument("kind", type=click.Choice(KIND_CHOICES))
@click.option("--payload", default="{}", help="Event payload as a JSON object")
@url_option
def emit(kind: str, payload: str, base_url: str) -> None:
    """Publish an event through a running hub.

    Examples:

        ztp-notify emit device_online --payload '{"mac": "aa:bb:cc:dd:ee:ff"}'
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--payload") from e
    if not isinstance(data, dict):
        raise click.BadParameter("Payload must be a JSON object", param_hint="--payload")

    try:
        response = httpx.post(
            f"{base_url.rstrip('/')}/events",
            json={"type": kind, "payload": data},
            timeout=10.0,
        )
    except httpx.ConnectError:
        click.echo(f"Cannot connect to hub at {base_url}", err=True)
        sys.exit(1)

    if response.status_code != 200:
        click.echo(f"Hub returned {response.status_code}: {response.text}", err=True)
        sys.exit(1)

    click.echo(f"Delivered to {response.json().get('delivered', 0)} clients")


@main.command()
@url_option
def health(base_url: str) -> None:
    """Check hub health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{base_url.rstrip('/')}/health")
                if response.status_code == 200:
                    data = response.json()
                    click.echo(f"Hub is healthy: {data}")
                else:
                    click.echo(f"Hub returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to hub at {base_url}", err=True)
            sys.exit(1)

    asyncio.run(check())


# =============================================================================
# Server Commands
# =============================================================================


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, help="Port to bind to")
@click.option("--prefix", default="/api", help="Path prefix for the hub routes")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str, port: int, prefix: str, reload: bool) -> None:
    """Run a notification hub server."""
    import os

    import uvicorn

    # Pass the prefix via environment variable for the app factory
    os.environ["ZTP_API_PREFIX"] = prefix

    click.echo(f"Starting notification hub on http://{host}:{port}{prefix}", err=True)
    click.echo(f"  WebSocket: ws://{host}:{port}{prefix}/ws", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "ztp_notify.server.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
