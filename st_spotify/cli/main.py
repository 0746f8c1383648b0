"""
Command-line interface for the SmartThings Spotify bridge.

Runs the HTTP service and exposes the login/refresh flow and a few
diagnostics from the terminal.
"""
from __future__ import annotations

from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table
from typer import Argument, Option
from typing_extensions import Annotated

from st_spotify.application.auth_status import collect_statuses
from st_spotify.application.exceptions import ApplicationError
from st_spotify.application.token_lifecycle import TokenLifecycleManager, utcnow
from st_spotify.config import settings
from st_spotify.domain.entities import Device
from st_spotify.domain.token_storage import CredentialStore
from st_spotify.infrastructure import log_utils
from st_spotify.infrastructure.di_container import get_container
from st_spotify.infrastructure.spotify_client import ProviderError
from st_spotify.utils.formatters import format_long_datetime, truncate_secret

console = Console()

app = typer.Typer(
    name="st-spotify",
    help="Bridge a Spotify account to SmartThings.",
    add_completion=False,
)


def _manager() -> TokenLifecycleManager:
    return get_container().resolve(TokenLifecycleManager)


@app.command()
def serve(
    host: Annotated[Optional[str], Option(help="Interface to bind (default: HOST setting).")] = None,
    port: Annotated[Optional[int], Option(help="Port to listen on (default: PORT setting).")] = None,
) -> None:
    """Run the HTTP API with uvicorn."""
    bind_host = host or settings.HOST
    bind_port = port or settings.PORT
    log_utils.log_message(f"SmartThings Spotify server is listening on {bind_host}:{bind_port}", "INFO")
    uvicorn.run("st_spotify.api:app", host=bind_host, port=bind_port, log_level=settings.ST_LOG_LEVEL.lower())


@app.command("login-url")
def login_url() -> None:
    """
    Print the Spotify authorization URL.
    Open it in a browser and approve the app; the redirect hits /callback.
    """
    typer.echo("-> Visit this URL to authorize the bridge with Spotify:")
    typer.echo(_manager().authorize_url())


@app.command("exchange-code")
def exchange_code(code: Annotated[str, Argument(help="The ?code=... value from the redirect URL.")]) -> None:
    """Exchange an authorization code for tokens and store them."""
    try:
        credential = _manager().complete_authorization(code)
    except (ApplicationError, ProviderError) as exc:
        log_utils.log_message(f"Failed to exchange code: {exc}", "ERROR")
        typer.echo(f"[FAIL] {exc}")
        raise typer.Exit(code=1)

    typer.echo("[OK] Successfully exchanged code for tokens.")
    typer.echo(f"Access token:  {truncate_secret(credential.access_token)}")
    typer.echo(f"Refresh token: {truncate_secret(credential.refresh_token)}")
    typer.echo(f"Expires at:    {format_long_datetime(credential.expires_at)}")


@app.command()
def refresh() -> None:
    """Refresh the access token if it is inside the safe-expiry margin."""
    try:
        status = _manager().ensure_fresh_token()
    except (ApplicationError, ProviderError) as exc:
        log_utils.log_message(f"Failed to refresh Spotify token: {exc}", "ERROR")
        typer.echo(f"[FAIL] {exc}")
        raise typer.Exit(code=1)

    if status.refreshed:
        typer.echo("[OK] Token refreshed.")
        typer.echo(f"Access token:  {truncate_secret(status.credential.access_token)}")
    else:
        typer.echo(f"[OK] Token is still valid. Expires at {format_long_datetime(status.safe_expiry)}")


@app.command()
def status() -> None:
    """Show an offline report of the credential and app settings."""
    store = get_container().resolve(CredentialStore)
    statuses = collect_statuses(settings.model_dump(), store, utcnow())

    table = Table(title="st-spotify status")
    table.add_column("Check", no_wrap=True)
    table.add_column("State", no_wrap=True)
    table.add_column("Detail")
    for item in statuses:
        table.add_row(item.name, item.state, item.message)
    console.print(table)

    if any(item.state == "action_required" for item in statuses):
        raise typer.Exit(code=1)


@app.command()
def devices() -> None:
    """List the Spotify Connect devices currently visible to the account."""
    try:
        payload = _manager().authorized_client().get_my_devices() or {}
    except (ApplicationError, ProviderError) as exc:
        log_utils.log_message(f"Failed to list Spotify devices: {exc}", "ERROR")
        typer.echo(f"[FAIL] {exc}")
        raise typer.Exit(code=1)

    found = [Device.from_payload(raw) for raw in payload.get("devices") or []]
    if not found:
        typer.echo("No Spotify devices available.")
        return

    table = Table(title="Spotify devices")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Active")
    for device in found:
        table.add_row(device.id or "", device.name, device.type, "yes" if device.is_active else "")
    console.print(table)


@app.command(help="View the most recent lines from the service log.")
def logs(
    number: int = Argument(
        50,
        help="Number of log lines to show (default: 50)."
    )
) -> None:
    if number <= 0:
        typer.echo("Number of lines must be positive.")
        raise typer.Exit(code=1)

    log_path = settings.log_path
    if not log_path.exists():
        typer.echo(f"Log file not found: {log_path}")
        raise typer.Exit(code=1)

    with log_path.open("r", encoding="utf-8") as f:
        lines = f.readlines()
        for line in lines[-number:]:
            typer.echo(line.rstrip())


if __name__ == "__main__":  # pragma: no cover
    app()
