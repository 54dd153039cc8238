"""
Click CLI interface for vpcctl.
"""

import json
import logging
import sys
from enum import Enum
from typing import Optional

import click
from botocore.exceptions import BotoCoreError, ClientError

from . import orchestrator
from .config import Settings, load_settings
from .errors import LedgerLocked, NothingToDelete, VpcctlError
from .metadata import MetadataClient, collect_report
from .plan import Plan, build_vpc_plan
from .poll import Poller
from .provider import Ec2Gateway
from .state import Ledger
from .status import RunState, ledger_status
from .tags import base_tags

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOCKED = 2


class Action(Enum):
    """Operator actions offered by the interactive menu."""
    CREATE = "1"
    DELETE = "2"
    STATUS = "3"
    EXIT = "4"


def log_info(message: str) -> None:
    click.echo(f"{click.style('[INFO]', fg='green')} {message}")


def log_warn(message: str) -> None:
    click.echo(f"{click.style('[WARN]', fg='yellow', bold=True)} {message}")


def log_error(message: str) -> None:
    click.echo(f"{click.style('[ERROR]', fg='red')} {message}", err=True)


def _build_plan(settings: Settings) -> Plan:
    gateway = Ec2Gateway(settings.region, base_tags(settings.vpc_name, settings.extra_tags))
    try:
        account = gateway.check_credentials()
    except (ClientError, BotoCoreError) as e:
        raise click.ClickException(
            f"AWS credentials are not configured or not valid ({e}). Run 'aws configure' first."
        )
    logger.debug(f"Using AWS account {account} in {settings.region}")

    poller = Poller(settings.poll_interval, settings.poll_attempts)
    return build_vpc_plan(gateway, settings, poller)


def _print_records(ledger: Ledger) -> None:
    click.echo("==================")
    for record in orchestrator.status(ledger):
        click.echo(f"{record.logical_name}={record.provider_id}")
    click.echo("==================")


def do_create(settings: Settings, resume: bool = False, assume_yes: bool = False) -> int:
    ledger = Ledger(settings.ledger_path)

    if not resume and ledger.exists() and not ledger.is_empty():
        log_warn(f"{ledger.path} still tracks {len(ledger.records())} resources.")
        if not assume_yes and not click.confirm(
            "Starting a new run will forget them (use --resume to continue instead). Continue?"
        ):
            log_info("Creation cancelled.")
            return EXIT_OK

    log_info("Starting VPC creation...")
    try:
        plan = _build_plan(settings)
        orchestrator.create(plan, ledger, resume=resume)
    except LedgerLocked as e:
        log_error(str(e))
        return EXIT_LOCKED
    except VpcctlError as e:
        log_error(str(e))
        log_warn("Resources created so far are still tracked; run delete to clean up or create --resume to continue.")
        return EXIT_FAILED

    log_info("VPC setup completed successfully!")
    log_info("Created Resources:")
    _print_records(ledger)
    return EXIT_OK


def do_delete(settings: Settings, assume_yes: bool = False) -> int:
    ledger = Ledger(settings.ledger_path)

    if not ledger.exists() or ledger.is_empty():
        log_error("Resource file not found. Nothing to delete.")
        return EXIT_FAILED

    if not assume_yes:
        log_warn("This will delete all VPC resources.")
        if not click.confirm("Continue?", default=False):
            log_info("Deletion cancelled.")
            return EXIT_OK

    log_info("Starting VPC deletion...")
    try:
        plan = _build_plan(settings)
        orchestrator.delete(plan, ledger)
    except NothingToDelete as e:
        log_error(str(e))
        return EXIT_FAILED
    except LedgerLocked as e:
        log_error(str(e))
        return EXIT_LOCKED
    except VpcctlError as e:
        log_error(str(e))
        log_warn("Remaining resources are still tracked; run delete again to resume.")
        return EXIT_FAILED

    log_info("VPC deletion completed successfully!")
    return EXIT_OK


def do_status(settings: Settings, output_json: bool = False) -> int:
    ledger = Ledger(settings.ledger_path)
    info = ledger_status(ledger)

    if output_json:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return EXIT_OK

    if not ledger.exists():
        log_info("No VPC resources found (resource file doesn't exist).")
    else:
        log_info("Current VPC Resources:")
        _print_records(ledger)

    if info.state == RunState.FAILED:
        log_warn(info.message)
        if info.failure_reason:
            log_warn(info.failure_reason)
    elif info.state != RunState.IDLE:
        log_info(info.message)
    return EXIT_OK


def _show_menu() -> None:
    click.echo("")
    click.echo("==========================================")
    click.echo("         VPC Management Script")
    click.echo("==========================================")
    click.echo("1. Create VPC with all resources")
    click.echo("2. Delete VPC and all resources")
    click.echo("3. Show current resources status")
    click.echo("4. Exit")
    click.echo("==========================================")


def dispatch(action: Action, settings: Settings) -> Optional[int]:
    """Run one menu action. Returns None for EXIT."""
    if action == Action.CREATE:
        return do_create(settings)
    if action == Action.DELETE:
        return do_delete(settings)
    if action == Action.STATUS:
        return do_status(settings)
    return None


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, verbose: bool):
    """
    vpcctl - Create and delete a VPC with public and private subnets and a NAT gateway.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = load_settings()
    except ValueError as e:
        raise click.UsageError(str(e))


@main.command()
@click.option("--resume", is_flag=True, help="Keep the existing ledger and skip resources already recorded")
@click.option("--yes", "assume_yes", is_flag=True, help="Don't ask before discarding a non-empty ledger")
@click.pass_context
def create(ctx, resume: bool, assume_yes: bool):
    """
    Create the VPC with all resources.
    """
    sys.exit(do_create(ctx.obj["settings"], resume=resume, assume_yes=assume_yes))


@main.command()
@click.option("--yes", "assume_yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def delete(ctx, assume_yes: bool):
    """
    Delete the VPC and all recorded resources.
    """
    sys.exit(do_delete(ctx.obj["settings"], assume_yes=assume_yes))


@main.command()
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
@click.pass_context
def status(ctx, output_json: bool):
    """
    Show the resources currently recorded in the ledger.
    """
    sys.exit(do_status(ctx.obj["settings"], output_json=output_json))


@main.command()
@click.pass_context
def menu(ctx):
    """
    Interactive menu.
    """
    settings = ctx.obj["settings"]

    while True:
        _show_menu()
        choice = click.prompt("Please choose an option [1-4]", default="", show_default=False)

        try:
            action = Action(choice.strip())
        except ValueError:
            log_error("Invalid option. Please choose 1, 2, 3, or 4.")
            continue

        try:
            if dispatch(action, settings) is None:
                log_info("Goodbye!")
                return
        except click.ClickException as e:
            log_error(e.format_message())

        click.echo("")
        click.pause("Press any key to continue...")


@main.command()
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
@click.option("--timeout", type=float, default=2.0, help="Per-request timeout in seconds")
def metadata(output_json: bool, timeout: float):
    """
    Show metadata of the EC2 instance this runs on.
    """
    report = collect_report(MetadataClient(timeout=timeout))

    if output_json:
        click.echo(json.dumps(report, indent=2))
    else:
        click.echo("=== EC2 Instance Metadata ===")
        for label, value in report["instance"].items():
            click.echo(f"{label}: {value}")

        click.echo("\n=== Instance Identity Document ===")
        for label, value in report["identity"].items():
            click.echo(f"{label}: {value}")

        click.echo("\n=== IAM Information ===")
        for label, value in report["iam"].items():
            click.echo(f"{label}: {value}")

        for warning in report["warnings"]:
            log_warn(warning)

    if not (report["instance"] or report["identity"] or report["iam"]):
        sys.exit(EXIT_FAILED)


if __name__ == "__main__":
    main()
