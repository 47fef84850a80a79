"""CLI entry point for broker-proxy."""

import asyncio
import sys
from datetime import datetime

from rich.console import Console

from app import create_app, create_broker_client
from auth import build_token_source
from core.config import CONFIG_FILE, Config, load_config, validate_for_serving
from core.exceptions import ConfigurationError, ProxyError
from core.protocols import TokenSource
from services.startup import StartupChecker
from ui.dashboard import Dashboard
from ui.log_utils import clear_logs, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    if len(sys.argv) > 1:
        arg = sys.argv[1]

        if arg == "--config":
            console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
            return

        if arg in ("--help", "-h"):
            _print_help()
            return

    try:
        config = load_config()
        validate_for_serving(config)
        token_source = build_token_source(config.token)
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {e}")
        console.print(f"[dim]Edit {CONFIG_FILE}[/dim]")
        sys.exit(1)

    if len(sys.argv) > 1 and sys.argv[1] == "--check":
        sys.exit(0 if asyncio.run(_run_check(config, token_source)) else 1)

    clear_logs()
    dashboard = Dashboard(config)

    import uvicorn

    app = create_app(config, dashboard, token_source)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
        lifespan="on",
        timeout_keep_alive=config.limits.keep_alive_timeout,
    )
    server = uvicorn.Server(uvicorn_config)

    dashboard.start()
    start_time = datetime.now()
    write_cli_log("STARTUP", "Proxy started", port=config.proxy.port)
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        dashboard.stop()

    if not server.started:
        console.print("[red][ERROR][/red] Startup check failed, see logs/proxy.log")
        sys.exit(1)


async def _run_check(config: Config, token_source: TokenSource) -> bool:
    """Run the startup check once and report the outcome."""
    async with create_broker_client(config) as client:
        checker = StartupChecker(config.broker.url, token_source, client)
        try:
            await checker.perform_startup_check()
        except ProxyError as e:
            console.print(f"[red]Startup check failed:[/red] {e}")
            return False
    console.print(f"[green]Broker reachable[/green] ({config.broker.url})")
    return True


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Broker Proxy[/bold cyan]

Forwards every request to a service broker with a fresh bearer token.

[bold]Usage:[/bold]
    broker-proxy              Start with live dashboard
    broker-proxy --check      Validate broker connectivity and credentials
    broker-proxy --config     Show config location
    broker-proxy --help       Show this help

[bold]Configuration:[/bold]
    JSON file at ~/.config/broker-proxy/config.json
    (override with BROKER_PROXY_CONFIG)
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
