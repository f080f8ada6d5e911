"""chatbridge command line"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..config.config import RelayConfig, load_env_file
from ..errors import ConfigError
from ..monitoring.log_setup import setup_logging

console = Console()
app = typer.Typer(help="Messenger ⇄ Discord chat bridge", no_args_is_help=True)


def _load_relay_config(host: Optional[str], port: Optional[int]) -> RelayConfig:
    load_env_file()
    try:
        config = RelayConfig.from_env()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    if host:
        config.ws_host = host
    if port is not None:
        config.ws_port = port
    return config


@app.command("relay")
def relay(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (overrides WS_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (overrides WS_PORT)"),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level"),
    plain_logs: bool = typer.Option(False, "--plain-logs", help="One plain line per log record"),
):
    """Run the relay: Discord client plus the agent websocket"""
    config = _load_relay_config(host, port)
    try:
        setup_logging(log_level, "plain" if plain_logs else "colored")
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    from ..relay.app import RelayApp

    console.print(f"[cyan]Starting relay on ws://{config.ws_host}:{config.ws_port}[/cyan]")
    try:
        asyncio.run(RelayApp.from_config(config).run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Relay stopped[/yellow]")
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("config")
def show_config():
    """Validate the environment and show the resolved relay settings"""
    config = _load_relay_config(None, None)

    table = Table(title="Relay configuration")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("discord_token", "***" + config.discord_token[-4:])
    table.add_row("guild_id", str(config.guild_id))
    table.add_row("ws", f"ws://{config.ws_host}:{config.ws_port}")
    table.add_row("enable_message_content", str(config.enable_message_content))
    table.add_row("ignore_bots", str(config.ignore_bots))
    table.add_row("fetch_timeout", f"{config.fetch_timeout}s")
    table.add_row("send_timeout", f"{config.send_timeout}s")
    table.add_row("send_retry_attempts", str(config.send_retry_attempts))
    table.add_row("max_attachment_bytes", str(config.max_attachment_bytes or "-"))

    console.print(table)


if __name__ == "__main__":
    app()
