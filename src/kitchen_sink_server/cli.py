"""Kitchen Sink Server CLI.

Usage:
    kitchen-sink-server                               # Serve on 0.0.0.0:8000
    kitchen-sink-server --port 9000                   # Custom port
    kitchen-sink-server --public-url https://x.example.com
    kitchen-sink-server --widget ./widget.html --widget-required
    kitchen-sink-server --health                      # Check a running server

Every option falls back to its KITCHEN_SINK_* environment variable.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
import httpx

from .config import ProbePolicy, ServerConfig
from .errors import ConfigError, ContentUnavailableError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    """Send all log output to stderr at the given level."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stderr_handler)
    root_logger.setLevel(level.upper())


@click.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--public-url", default=None, help="Externally visible base URL")
@click.option(
    "--probe-policy",
    type=click.Choice([p.value for p in ProbePolicy]),
    default=None,
    help="Answer to POST on the stream path: reject (405) or permit (200)",
)
@click.option(
    "--widget",
    "widget_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="HTML file served as the widget template",
)
@click.option(
    "--widget-required/--widget-optional",
    default=None,
    help="Fail at startup when the widget file is missing",
)
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, ...)")
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload for development (reads settings from the environment only)",
)
@click.option("--health", "health_check", is_flag=True, help="Check server health and exit")
@click.option("--health-url", default="http://localhost:8000", help="Server URL for health check")
def main(
    host: str | None,
    port: int | None,
    public_url: str | None,
    probe_policy: str | None,
    widget_path: Path | None,
    widget_required: bool | None,
    log_level: str | None,
    reload: bool,
    health_check: bool,
    health_url: str,
) -> None:
    """Kitchen Sink Server - session-scoped MCP endpoint over SSE."""
    if health_check:
        _do_health_check(health_url)
        return

    try:
        config = ServerConfig.from_env().with_overrides(
            host=host,
            port=port,
            public_url=public_url,
            probe_policy=ProbePolicy(probe_policy) if probe_policy else None,
            widget_path=widget_path,
            widget_required=widget_required,
            log_level=log_level.upper() if log_level else None,
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    configure_logging(config.log_level)
    _run_http_server(config, reload)


def _run_http_server(config: ServerConfig, reload: bool) -> None:
    """Run the app under uvicorn."""
    import uvicorn

    from .app import create_app

    click.echo(f"Starting kitchen sink server on http://{config.host}:{config.port}", err=True)
    click.echo(f"  Connect via: {config.public_url or ''}{config.sse_path}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    if reload:
        # Reload needs an import string; settings travel through the environment
        uvicorn.run(
            "kitchen_sink_server.app:create_app_from_env",
            factory=True,
            host=config.host,
            port=config.port,
            reload=True,
            log_config=None,
        )
        return

    try:
        app = create_app(config)
    except ContentUnavailableError as e:
        click.echo(f"Startup failed: {e}", err=True)
        sys.exit(1)

    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


def _do_health_check(url: str) -> None:
    """Check server health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url.rstrip('/')}/health")
                if response.status_code == 200:
                    click.echo(f"Server is healthy: {response.text}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
