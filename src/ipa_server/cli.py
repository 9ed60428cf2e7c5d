# SPDX-License-Identifier: MIT
"""CLI entry point for the ipa-server command."""

from __future__ import annotations

import sys
from typing import Optional

import click

from .config import APIConfig, ConfigError
from .logging_config import configure_logging
from .middleware.errors import APIError


def echo_error(message: str) -> None:
    """Print an error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


@click.group()
@click.version_option(package_name="ipa-server")
def cli() -> None:
    """Over-the-air distribution server for iOS applications.

    Settings default to the IPA_SERVER_* environment variables; options
    given here take precedence.

    \b
    Examples:
        ipa-server serve
        ipa-server serve --public-url https://ipa.example.com --port 8080
    """


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, envvar="ADDRESS", help="Bind address.")
@click.option("--port", default=8080, show_default=True, envvar="PORT", type=int, help="Bind port.")
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False),
    help="Directory for uploaded archives (local backend).",
)
@click.option("--public-url", help="External URL of this server, e.g. https://ipa.example.com.")
@click.option(
    "--metadata-path",
    type=click.Path(dir_okay=False),
    help="Metadata index file. Use a secret path when it sits inside the storage directory.",
)
@click.option(
    "--reset-corrupt-index",
    is_flag=True,
    help="Move an unreadable metadata index aside and start with an empty one.",
)
@click.option("-d", "--debug", is_flag=True, help="Enable debug logging.")
def serve(
    host: str,
    port: int,
    storage_dir: Optional[str],
    public_url: Optional[str],
    metadata_path: Optional[str],
    reset_corrupt_index: bool,
    debug: bool,
) -> None:
    """Run the HTTP server."""
    import uvicorn

    from .app import create_app, init_state

    config = APIConfig.from_env()
    if storage_dir:
        config.storage.local_path = storage_dir
    if public_url:
        config.public_url = public_url
    if metadata_path:
        config.index.path = metadata_path
    if reset_corrupt_index:
        config.index.reset_on_corruption = True
    config.debug = config.debug or debug

    configure_logging(config.debug)

    app = create_app(config)
    # Fail before binding the port when storage or index are unusable
    init_state(app)

    click.echo(f"Listening on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="debug" if config.debug else "info")


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except ConfigError as e:
        echo_error(str(e))
        sys.exit(1)
    except APIError as e:
        echo_error(e.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
