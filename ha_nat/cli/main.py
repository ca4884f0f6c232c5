"""
Main CLI entry point for ha-nat.

Configures this instance as the highly-available NAT gateway for its zone.
Normally invoked from user data or a oneshot systemd unit at boot.
"""

import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ha_nat import __version__
from ha_nat.core.config import ConfigManager
from ha_nat.core.exceptions import HANatError, UserCancelled
from ha_nat.core.logging import setup_logging
from ha_nat.services.models import RunSummary
from ha_nat.services.orchestrator import NatBootstrap


console = Console()
logger = logging.getLogger("ha_nat.cli")

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USER_CANCELLED = 130

FAILURE_BANNER = "NAT INSTANCE CONFIGURATION FAILED"


def render_summary(summary: RunSummary) -> Table:
    table = Table(title="NAT instance configured", show_header=False)
    table.add_column("Item", style="bold")
    table.add_column("Value")
    table.add_row("Instance", summary.identity.instance_id)
    table.add_row("Zone", summary.identity.availability_zone)
    table.add_row("VPC CIDR", summary.interface.vpc_cidr)
    table.add_row("Rules added", str(len(summary.nat.rules_added)))
    table.add_row("Rules present", str(len(summary.nat.rules_present)))
    table.add_row(
        "Source/dest check",
        "disabled" if summary.source_dest_check_disabled else "[red]NOT disabled[/red]",
    )
    table.add_row(
        "Elastic IP",
        f"{summary.association.public_ip} ({summary.association.candidate.allocation_id})",
    )
    table.add_row("Route table", f"{summary.route.route_table_id} ({summary.route.action})")
    return table


def fail(message: str) -> None:
    logger.error(message)
    logger.critical(FAILURE_BANNER)
    console.print(f"💥 [bold red]{FAILURE_BANNER}[/bold red]")
    sys.exit(EXIT_FAILURE)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="JSON configuration file (defaults to /etc/ha-nat/config.json)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Also append log output to this file",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@click.version_option(version=__version__)
def main(
    config_path: Optional[str] = None,
    log_file: Optional[str] = None,
    verbose: bool = False,
) -> None:
    """
    Configure this instance as a highly-available NAT gateway.

    Enables forwarding and masquerading, disables the source/destination
    check, claims an elastic IP from the pool and takes over the zone's
    default route.
    """
    try:
        setup_logging(verbose=verbose, log_file=log_file, console=console)

        config = ConfigManager(config_path).load_config()
        summary = NatBootstrap(config).run()

        console.print(render_summary(summary))
        logger.info("NAT instance configuration complete in %.1fs", summary.duration or 0.0)

    except (KeyboardInterrupt, UserCancelled):
        console.print("\n⚠️  [yellow]Run interrupted[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except HANatError as e:
        fail(e.message)
    except Exception as e:
        fail(f"Unexpected error: {e}")


if __name__ == "__main__":
    main()
