"""CLI entry point."""

import secrets

import typer
from rich.console import Console
from rich.table import Table

from oauth_broker.errors import OAuthError

app = typer.Typer(name="oauth-broker", help="Multi-provider OAuth broker CLI")
console = Console()


@app.command()
def providers() -> None:
    """List providers configured through the environment.

    Examples:
        OAUTH_BROKER_BITBUCKET__CLIENT_ID=... OAUTH_BROKER_BITBUCKET__CLIENT_SECRET=... \\
            oauth-broker providers
    """
    from oauth_broker.providers.factory import build_providers
    from oauth_broker.settings import settings

    configured = build_providers(settings)
    if not configured:
        console.print("[yellow]No providers configured[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title="OAuth providers")
    table.add_column("Name", style="cyan")
    table.add_column("Client ID")
    table.add_column("Authorization endpoint")
    table.add_column("Redirect URI", style="dim")

    for provider in configured:
        config = provider.config
        table.add_row(provider.name, config.client_id, config.authorization_url, config.redirect_uri)

    console.print(table)


@app.command()
def authorize(
    provider: str = typer.Argument(..., help="Provider name (e.g. 'bitbucket')"),
    return_to: str = typer.Option(None, "--return-to", help="Post-login redirect"),
) -> None:
    """Print an authorization URL and state for a configured provider.

    The state is only redeemable by a process sharing this nonce store
    (use the redis store to complete the flow elsewhere).

    Examples:
        oauth-broker authorize bitbucket --return-to /dashboard
    """
    from oauth_broker.manager import create_manager
    from oauth_broker.settings import settings

    try:
        manager = create_manager(settings)
        flow = manager.initiate_flow(provider, return_to=return_to)
    except OAuthError as e:
        console.print(f"[red]Error ({e.status_code}):[/red] {e.message}")
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Provider: {flow.provider}")
    console.print(f"[blue]Authorization URL:[/blue] {flow.authorization_url}")
    console.print(f"[dim]State:[/dim] {flow.state}")


@app.command()
def generate_secret(
    num_bytes: int = typer.Option(48, "--bytes", help="Random bytes of entropy"),
) -> None:
    """Print a fresh state signing secret.

    Store it in your secret manager as OAUTH_BROKER_STATE__SIGNING_SECRET.
    """
    typer.echo(secrets.token_urlsafe(num_bytes))


@app.command()
def version() -> None:
    """Show version information."""
    from oauth_broker import __version__

    typer.echo(f"oauth-broker v{__version__}")


if __name__ == "__main__":
    app()
