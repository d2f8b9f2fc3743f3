"""
nscon command line.

Finds which GKE cluster and GCP project host a namespace and switches the
active cluster context there. `nscon --scan` rebuilds the namespace inventory
from every project configured in gcloud.
"""

import argparse
import asyncio
from pathlib import Path
from typing import List, Optional, Sequence
import structlog
from rich.console import Console

from nscon.core.exceptions import NotFoundError, NsconError
from nscon.modules.discovery.adapters.connector import GcloudConnector
from nscon.modules.discovery.domain.inventory import Inventory
from nscon.modules.discovery.domain.resolver import Disambiguator, LocationResolver
from nscon.modules.discovery.domain.scanner import NamespaceScanCoordinator, ScanReport
from nscon.shared.adapters.base import ClusterLister
from nscon.shared.adapters.gcloud import GcloudConfigurations
from nscon.shared.core.config import (
    LookupFilter,
    ScanOptions,
    Settings,
    bootstrap_config,
    load_settings,
    resolve_config_file,
)
from nscon.shared.core.logging import setup_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nscon",
        description=(
            "Quickly switch between namespaces in different GKE clusters. "
            "Scans all GKE clusters in all GCP projects configured for your user "
            "and indexes their namespaces."
        ),
    )
    parser.add_argument("namespace", nargs="?", help="namespace name to connect to")
    parser.add_argument(
        "-s", "--scan", action="store_true",
        help="scans all clusters in all cloud projects for namespaces",
    )
    parser.add_argument("-p", "--project", help="project you want to search namespaces in")
    parser.add_argument("-c", "--cluster", help="cluster name you want to search namespaces in")
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="gives verbose output of some actions application will perform",
    )
    parser.add_argument("--config", type=Path, help="config file (default is $HOME/.nscon/config.yaml)")
    return parser


def scan_inventory(
    settings: Settings,
    console: Console,
    verbose: bool = False,
    configurations: Optional[GcloudConfigurations] = None,
    lister: Optional[ClusterLister] = None,
) -> Inventory:
    """List projects, scan them, rebuild and persist the inventory."""
    configurations = configurations or GcloudConfigurations(settings.GCLOUD_CONFIG_DIR)
    if lister is None:
        from nscon.shared.adapters.gke import GKEClusterLister

        lister = GKEClusterLister()

    console.print("[green]Scanning...[/green]")
    projects = configurations.list_projects(settings.ACCOUNT_FILTER)
    coordinator = NamespaceScanCoordinator(lister, ScanOptions.from_settings(settings, verbose))
    report = asyncio.run(coordinator.scan(projects))

    inventory = Inventory().build(report)
    path = inventory.persist(settings.INVENTORY_LOCATION)
    console.print(f"[green]Inventory saved to file {path}[/green]")
    _print_scan_summary(report, console)
    return inventory


def _print_scan_summary(report: ScanReport, console: Console) -> None:
    console.print(f"Scanned {report.succeeded} of {report.attempted} projects")
    for project_id, reason in report.failures.items():
        console.print(
            f"[red]There was a problem scanning namespaces in project {project_id}: {reason}[/red]"
        )


def connect_to_namespace(
    query: LookupFilter,
    settings: Settings,
    console: Console,
    inventory: Optional[Inventory] = None,
    connector: Optional[GcloudConnector] = None,
    disambiguator: Optional[Disambiguator] = None,
) -> int:
    inventory = inventory if inventory is not None else Inventory.load(settings.INVENTORY_LOCATION)
    disambiguator = disambiguator or Disambiguator(
        console=console, max_attempts=settings.PROMPT_MAX_ATTEMPTS
    )
    resolution = LocationResolver(inventory, disambiguator).resolve(query)
    if not resolution.found or resolution.location is None:
        console.print(f"[red]Can't find {query.describe()}[/red]")
        console.print(f"HINT: Check if data you provided is correct. {NotFoundError.hint}")
        return 1

    connector = connector or GcloudConnector(
        GcloudConfigurations(settings.GCLOUD_CONFIG_DIR), console=console
    )
    connector.connect(resolution.location)
    return 0


def main(argv: Optional[Sequence[str]] = None, console: Optional[Console] = None) -> int:
    console = console or Console()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.namespace and not args.scan:
        parser.error("requires namespace name as an argument")

    config_file = resolve_config_file(args.config)
    try:
        if not config_file.exists():
            setup_logging(verbose=args.verbose, settings=Settings())
            console.print("[red]Configuration file not found. Creating default configuration[/red]")
            bootstrap_config(config_file)
            console.print(
                "[green]Configuration initialised!! Execute 'nscon --scan' to create namespaces inventory[/green]"
            )
            return 0

        settings = load_settings(config_file)
        setup_logging(verbose=args.verbose, settings=settings)

        inventory: Optional[Inventory] = None
        if args.scan:
            inventory = scan_inventory(settings, console, verbose=args.verbose)
            if not args.namespace:
                return 0

        query = LookupFilter(namespace=args.namespace, project=args.project, cluster=args.cluster)
        return connect_to_namespace(query, settings, console, inventory=inventory)
    except NotFoundError as exc:
        console.print(f"[red]{exc.message}[/red]")
        console.print(f"HINT: {exc.hint}")
        return exc.exit_code
    except NsconError as exc:
        logger.error("nscon_failed", code=exc.code, error=exc.message, **exc.details)
        console.print(f"[red]{exc.message}[/red]")
        return exc.exit_code


def run(argv: Optional[List[str]] = None) -> None:
    raise SystemExit(main(argv))


if __name__ == "__main__":
    run()
