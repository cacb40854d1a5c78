"""
This file is the entry point for the 'repoclient' command-line tool.
Run 'repoclient --help' in your shell to use the CLI.

The repository URL comes from --url, or from the configuration
(REPOCLIENT_URL or repository_url in ~/.repoclient/config.yaml).
"""
import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from catalog.models import RepositoryDescription, ServiceDescriptor
from common.app_setup import print_error, setup_logging
from common.config import load_config
from discovery.errors import RepositoryClientError
from discovery.repository_client import RepositoryClient
from discovery.trace_sinks import LoggingTraceSink

app = typer.Typer(add_completion=False, help="Discover the services published by a repository.")
console = Console()

state: dict = {}


@app.callback()
def main(config: Optional[str] = typer.Option(None, "--config", help="Path to a YAML configuration file")):
    """Load configuration and set up logging before any command runs."""
    try:
        state["config"] = load_config(config)
    except (OSError, ValueError) as e:
        print_error(f"Cannot load configuration: {e}")
        raise typer.Exit(2)
    cfg = state["config"]
    setup_logging(app_name="repoclient", loglevel=cfg.log_level, logfile=cfg.logfile)


def _repository_url(url: Optional[str]) -> str:
    url = url or state["config"].repository_url
    if not url:
        print_error("No repository URL given. Use --url or set REPOCLIENT_URL.")
        raise typer.Exit(2)
    return url


async def _describe(url: str) -> RepositoryDescription:
    async with RepositoryClient(url, LoggingTraceSink(), timeout=state["config"].timeout) as repo:
        return await repo.get_repository_description()


async def _lookup(url: str, name: str) -> Optional[ServiceDescriptor]:
    async with RepositoryClient(url, LoggingTraceSink(), timeout=state["config"].timeout) as repo:
        return await repo.get_service(name)


def _service_dict(service: ServiceDescriptor) -> dict:
    return service.model_dump(mode="json")


@app.command()
def services(url: Optional[str] = typer.Option(None, help="Root URL of the repository"),
             as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table")):
    """List the services published by the repository."""
    root = _repository_url(url)
    try:
        description = asyncio.run(_describe(root))
    except RepositoryClientError as e:
        print_error(f"Failed to read repository at {root}: {e}")
        raise typer.Exit(1)

    if as_json:
        print(json.dumps(description.model_dump(mode="json"), indent=2))
        return
    table = Table(title=f"Services at {description.url}")
    table.add_column("Name", style="bold")
    table.add_column("URL")
    table.add_column("Version")
    for service in description.services:
        table.add_row(service.name, "\n".join(service.urls),
                      "" if service.version is None else str(service.version))
    console.print(table)


@app.command()
def show(name: str = typer.Argument(..., help="Service name (case-insensitive)"),
         url: Optional[str] = typer.Option(None, help="Root URL of the repository"),
         as_json: bool = typer.Option(False, "--json", help="Print JSON")):
    """Show one service of the repository."""
    root = _repository_url(url)
    try:
        service = asyncio.run(_lookup(root, name))
    except RepositoryClientError as e:
        print_error(f"Failed to read repository at {root}: {e}")
        raise typer.Exit(1)
    if service is None:
        print_error(f"Service not found: {name}")
        raise typer.Exit(1)

    if as_json:
        print(json.dumps(_service_dict(service), indent=2))
        return
    console.print(f"[bold]{service.name}[/bold]")
    for service_url in service.urls:
        console.print(f"  url: {service_url}")
    if service.version is not None:
        console.print(f"  version: {service.version}")
    for key, value in service.metadata.items():
        console.print(f"  {key}: {value}")


if __name__ == "__main__":
    app()
