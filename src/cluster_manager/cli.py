"""Command-line interface for the cluster manager."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
import uvicorn
from rich.console import Console
from rich.table import Table

from cluster_manager.config import ControlPlaneConfig, Settings, SubnetworkConfig
from cluster_manager.utils.logging import setup_logging

console = Console()


@click.group()
def cli():
    """Managed Kubernetes cluster control plane."""
    pass


@cli.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default=Path("config/cluster-manager.yaml"),
    help="Path to control-plane configuration file",
)
def init(config: Path) -> None:
    """Write a sample control-plane configuration."""
    setup_logging()

    if config.exists():
        if not click.confirm(f"Configuration file {config} already exists. Overwrite?"):
            console.print("[yellow]Initialization cancelled.[/yellow]")
            return

    config.parent.mkdir(parents=True, exist_ok=True)

    sample = ControlPlaneConfig(
        subnetworks=[
            SubnetworkConfig(
                project="my-project",
                network_project="my-project",
                network="projects/my-project/global/networks/default",
                subnetwork="projects/my-project/regions/us-central1/subnetworks/default",
                ip_cidr_range="10.128.0.0/20",
            )
        ],
    )
    sample.to_yaml(config)

    console.print(f"[green]✓[/green] Configuration initialized at {config}")


@cli.command()
@click.argument(
    "config_path",
    type=click.Path(exists=True, path_type=Path),
)
def config(config_path: Path) -> None:
    """Validate a control-plane configuration file."""
    setup_logging()

    try:
        control_plane_config = ControlPlaneConfig.from_yaml(config_path)
    except Exception as e:
        console.print(f"[red]✗[/red] Configuration validation failed: {e}")
        raise click.ClickException(str(e))

    reconciler = control_plane_config.reconciler
    versions = control_plane_config.versions
    console.print("[green]✓[/green] Configuration is valid")
    console.print(f"  Reconciler workers: {reconciler.workers}")
    console.print(
        f"  Backend retries: {reconciler.max_attempts} attempts, "
        f"base delay {reconciler.base_delay}s"
    )
    console.print(f"  Default version: {versions.default_version}")
    console.print(f"  State file: {control_plane_config.store.state_file or 'in-memory'}")

    table = Table(title="Usable Subnetworks")
    table.add_column("Project", style="cyan")
    table.add_column("Network project", style="magenta")
    table.add_column("Subnetwork")
    table.add_column("Range", justify="right")

    for subnet in control_plane_config.subnetworks:
        table.add_row(
            subnet.project,
            subnet.network_project,
            subnet.subnetwork,
            subnet.ip_cidr_range,
        )

    console.print(table)


@cli.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to control-plane configuration file",
)
@click.option("--host", type=str, default=None, help="Bind address")
@click.option("--port", type=int, default=None, help="Bind port")
def serve(config: Optional[Path], host: Optional[str], port: Optional[int]) -> None:
    """Run the control-plane HTTP API."""
    from cluster_manager.web import create_app

    settings = Settings()
    if config is not None:
        settings.config_path = str(config)

    app = create_app(settings=settings)
    console.print(
        f"[green]Serving cluster manager on "
        f"{host or settings.api.host}:{port or settings.api.port}[/green]"
    )
    uvicorn.run(
        app,
        host=host or settings.api.host,
        port=port or settings.api.port,
        log_level=settings.logging.level.lower(),
    )


@cli.command()
def version() -> None:
    """Show version information."""
    from cluster_manager import __version__
    console.print(f"Cluster Manager v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
