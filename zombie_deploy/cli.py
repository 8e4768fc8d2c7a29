"""zombie-deploy command line."""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .artifacts import ArtifactRegistry
from .config import Settings, load_config
from .errors import DeployerError
from .migrations import discover_migrations
from .records import DeploymentRecord
from .runner import DeploymentRunner

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    name="zombie-deploy",
    help="Deploy compiled contracts to a configured network, one migration at a time.",
    no_args_is_help=True,
    add_completion=False,
)


def configure_logging(log_file: Optional[str] = None, verbose: bool = False):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


@app.command()
def migrate(
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Network to deploy to"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the JSON configuration"),
    migrations_dir: Optional[str] = typer.Option(None, "--migrations", help="Directory of migration scripts"),
    build_dir: Optional[str] = typer.Option(None, "--build-dir", help="Directory of compiled artifacts"),
    start: Optional[int] = typer.Option(None, "--from", "-f", help="First migration number to run"),
    end: Optional[int] = typer.Option(None, "--to", help="Last migration number to run"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without deploying"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run migration scripts against a network."""
    try:
        settings = Settings.from_env()
        configure_logging(settings.log_file, verbose)

        deploy_config = load_config(config or settings.config_path)
        profile = deploy_config.get_network(network or settings.network)
        migrations = discover_migrations(migrations_dir or settings.migrations_dir, start, end)

        console.print(
            f"Network [bold]{profile.name}[/bold] ({profile.rpc_url}, network_id {profile.network_id}), "
            f"{deploy_config.compiler.tool_name} {deploy_config.compiler.version}"
        )
        if not migrations:
            console.print("[yellow]No migrations to run[/yellow]")
            return
        for migration in migrations:
            console.print(f"  {migration.ordinal}. {migration.name}")
        if dry_run:
            console.print("[dim]Dry run, nothing deployed[/dim]")
            return

        artifacts = ArtifactRegistry.from_directory(build_dir or settings.build_dir)
        artifacts.check_compiler(deploy_config.compiler)
        runner = DeploymentRunner(
            profile,
            artifacts,
            record=DeploymentRecord.load(settings.deployment_file),
            private_key=settings.private_key,
            tx_timeout=settings.tx_timeout,
        )
        deployed = runner.run_migrations(migrations)
    except DeployerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None

    table = Table(title=f"Deployed to {profile.name}")
    table.add_column("#", justify="right")
    table.add_column("Contract")
    table.add_column("Address")
    table.add_column("Block", justify="right")
    for contract in deployed:
        table.add_row(
            str(contract.ordinal or "-"),
            contract.contract_name,
            contract.address,
            str(contract.block_number if contract.block_number is not None else "-"),
        )
    console.print(table)


@app.command()
def networks(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the JSON configuration"),
) -> None:
    """List configured networks and the contracts recorded on them."""
    try:
        settings = Settings.from_env()
        deploy_config = load_config(config or settings.config_path)
        record = DeploymentRecord.load(settings.deployment_file)
    except DeployerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None

    table = Table(title=f"Networks ({deploy_config.compiler.tool_name} {deploy_config.compiler.version})")
    table.add_column("Name")
    table.add_column("RPC URL")
    table.add_column("Network id")
    table.add_column("Contracts")
    for name in deploy_config.network_names():
        profile = deploy_config.get_network(name)
        contracts = record.contracts(name)
        listing = "\n".join(f"{c}: {entry['address']}" for c, entry in contracts.items()) or "-"
        table.add_row(name, profile.rpc_url, profile.network_id, listing)
    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
