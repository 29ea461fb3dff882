# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line entry point for mailjet-relay.

Usage:
    mailjet-relay [PORT] [ADDR] [CONFIG]

    # Defaults: 3000, 127.0.0.1, ./config.json
    mailjet-relay
    mailjet-relay 8080 0.0.0.0 /etc/mailjet-relay/config.json --events-dir /var/lib/mailjet-relay

Environment variables (fallbacks for the options):
    MAILJET_RELAY_EVENTS_DIR - Directory for per-tenant events files (default: .)
    MAILJET_RELAY_STATIC_DIR - Static dashboard directory (default: ./public)
    MAILJET_RELAY_TIMEOUT - Upstream request timeout in seconds (default: 30)
    MAILJET_RELAY_LOG_LEVEL - Logging level (default: INFO)
"""

from __future__ import annotations

import sys

import click
import uvicorn
from rich.console import Console

from . import __version__
from .api import DEFAULT_STATIC_DIR, create_app
from .config_loader import DEFAULT_CONFIG_PATH, load_config
from .errors import ConfigError
from .gateway import DEFAULT_TIMEOUT_SECONDS, UpstreamGateway
from .logger import configure_logging, get_logger

DEFAULT_PORT = 3000
DEFAULT_ADDR = "127.0.0.1"

console = Console()
err_console = Console(stderr=True)
logger = get_logger("MailjetRelayCLI")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("port", type=click.IntRange(1, 65535), default=DEFAULT_PORT, required=False)
@click.argument("addr", default=DEFAULT_ADDR, required=False)
@click.argument("config_path", default=DEFAULT_CONFIG_PATH, required=False)
@click.option(
    "--events-dir",
    envvar="MAILJET_RELAY_EVENTS_DIR",
    default=".",
    show_default=True,
    type=click.Path(file_okay=False),
    help="Directory holding the per-tenant events files.",
)
@click.option(
    "--static-dir",
    envvar="MAILJET_RELAY_STATIC_DIR",
    default=DEFAULT_STATIC_DIR,
    show_default=True,
    type=click.Path(file_okay=False),
    help="Directory served for unknown paths.",
)
@click.option(
    "--timeout",
    envvar="MAILJET_RELAY_TIMEOUT",
    default=DEFAULT_TIMEOUT_SECONDS,
    show_default=True,
    type=click.FloatRange(min=0, min_open=True),
    help="Upstream request timeout in seconds.",
)
@click.option(
    "--log-level",
    envvar="MAILJET_RELAY_LOG_LEVEL",
    default="INFO",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
@click.version_option(__version__, prog_name="mailjet-relay")
def main(
    port: int,
    addr: str,
    config_path: str,
    events_dir: str,
    static_dir: str,
    timeout: float,
    log_level: str,
) -> None:
    """Serve the Mailjet relay on ADDR:PORT using the CONFIG file."""
    configure_logging(log_level)
    addr = addr or DEFAULT_ADDR
    config_path = config_path or DEFAULT_CONFIG_PATH

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        print_error(str(exc))
        sys.exit(1)

    app = create_app(
        config,
        events_dir=events_dir,
        static_dir=static_dir,
        gateway=UpstreamGateway(timeout=timeout),
    )

    print_success(f"Server started: http://{addr}:{port}")
    uvicorn.run(app, host=addr, port=port, log_level=log_level.lower())


if __name__ == "__main__":
    main()
