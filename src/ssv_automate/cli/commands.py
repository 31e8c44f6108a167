"""Typer CLI commands with Rich formatting."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..core.errors import SSVAutomateError
from ..core.types import OffboardAction
from ..services.deposit_merge import DepositMergeService
from ..services.offboarding import OffboardingService
from ..services.onboarding import OnboardingPipeline
from ..services.operator_service import OperatorService

app = typer.Typer(
    name="ssv-automate",
    help="Automate SSV validator onboarding and offboarding for Simple DVT operators",
    pretty_exceptions_enable=False,
)
console = Console()
err_console = Console(stderr=True)

state = {"verbose": False}


def run_async(coro):
    """Run an async service call, reporting tool errors and exiting with 1."""
    try:
        return asyncio.run(coro)
    except SSVAutomateError as e:
        if state["verbose"]:
            err_console.print_exception()
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        if state["verbose"]:
            err_console.print_exception()
        err_console.print(f"[red]Unexpected error: {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)


def parse_id_list(value: Optional[str]) -> Optional[list[int]]:
    """Parse a comma separated list of operator ids."""
    if value is None:
        return None
    try:
        return [int(item) for item in value.split(",") if item.strip()]
    except ValueError:
        raise typer.BadParameter(f"expected comma separated integers, got {value!r}")


def parse_str_list(value: Optional[str]) -> Optional[list[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def print_problems(problems: dict, label: str) -> None:
    """Print the problem summary of a run."""
    console.print(f"\nEncountered {len(problems)} problem(s)")
    if not problems:
        return
    table = Table(title="Problems")
    table.add_column(label, style="cyan")
    table.add_column("Issue", style="red")
    for key, message in problems.items():
        table.add_row(str(key), str(message))
    console.print(table)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"ssv-automate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Debug logging and tracebacks on errors"
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show the version and exit",
    ),
):
    """
    Query SSV operator and cluster data, run DKG ceremonies, and submit
    deposit and registration transactions.
    """
    state["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


@app.command()
def operators(
    owner: Optional[str] = typer.Argument(
        None, help="Cluster owner address; marks operators already in its clusters"
    ),
    search: Optional[str] = typer.Option(
        None, "--search", "-s", help="Operator name filter (default: LIDO_OPERATOR_SEARCH)"
    ),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """
    List Lido operators registered on the SSV network.

    Examples:
        ssv-automate operators
        ssv-automate operators 0xOwner --search "Lido - "
    """
    service = OperatorService()

    with console.status("[bold blue]Obtaining Lido operators..."):
        lido_operators = run_async(service.get_lido_operators(search))
        in_clusters = run_async(service.get_operator_ids_in_clusters(owner)) if owner else set()

    if output_json:
        print(json.dumps([op.model_dump() for op in lido_operators], indent=2))
        return

    table = Table(title=f"Operators ({len(lido_operators)})")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name")
    table.add_column("DKG Endpoint", style="green")
    if owner:
        table.add_column("In Cluster", justify="center")
    for op in lido_operators:
        row = [str(op.id), op.name or "", op.dkg_address or "[red]not set[/red]"]
        if owner:
            row.append("yes" if op.id in in_clusters else "[yellow]no[/yellow]")
        table.add_row(*row)
    console.print(table)


@app.command()
def new(
    owner: str = typer.Argument(..., help="The address of the cluster owner"),
    operator_ids: str = typer.Option(
        ..., "--operators", "-o", help="Comma separated list of operator ids to test"
    ),
):
    """Show which of the given operators have no cluster with OWNER yet."""
    ids = parse_id_list(operator_ids)
    service = OperatorService()

    with console.status("[bold blue]Fetching clusters..."):
        new_operators = run_async(service.get_new_operators(owner, ids))

    console.print("[bold]New operators:[/bold]")
    console.print(", ".join(str(op_id) for op_id in new_operators) or "[dim]none[/dim]")


@app.command()
def ping(
    owner: str = typer.Argument(..., help="The address of the cluster owner"),
    operator_ids: str = typer.Option(
        ..., "--operators", "-o", help="Comma separated list of operator ids to test"
    ),
):
    """Ping the DKG endpoint of each operator."""
    ids = parse_id_list(operator_ids)
    service = OperatorService()

    report = run_async(service.ping_operators(ids))

    console.print(
        f"Good operators: [green]{', '.join(map(str, report.healthy)) or 'none'}[/green]"
    )
    print_problems(report.problems, "Operator")
    if report.problems:
        raise typer.Exit(1)


def _onboard(
    owner: str,
    ids: list[int] | None,
    withdraw_address: Optional[str],
    validators: Optional[int],
) -> None:
    console.print(
        Panel(
            "Automating validator key creation, activation and registration",
            title="SSV Automate",
        )
    )
    if ids is None:
        with console.status("[bold blue]Finding Lido operators without a cluster..."):
            ids = run_async(OperatorService().get_new_lido_operators(owner))
        console.print(f"New operators: {', '.join(map(str, ids)) or 'none'}")

    pipeline = OnboardingPipeline()
    report = run_async(
        pipeline.run(owner, ids, withdraw_address=withdraw_address, validators=validators)
    )

    if report.completed:
        console.print(
            f"[green]Onboarded operators: {', '.join(map(str, report.completed))}[/green]"
        )
    print_problems(report.problems, "Operator")
    console.print(f"Done. Next user nonce is {report.next_nonce}")
    if report.problems:
        raise typer.Exit(1)


@app.command()
def onboard(
    owner: str = typer.Argument(..., help="The address of the cluster owner"),
    operator_ids: str = typer.Option(
        ..., "--operators", "-o", help="Comma separated list of operator ids to onboard"
    ),
    withdraw_address: Optional[str] = typer.Option(
        None, "--withdraw-address", "-w", help="Withdrawal address (default: OWNER)"
    ),
    validators: Optional[int] = typer.Option(
        None, "--validators", "-n", min=1, help="Validator keys per ceremony"
    ),
):
    """
    Create, activate and register validators with the given operators.

    Each operator is put in a cluster with the default operators.
    """
    _onboard(owner, parse_id_list(operator_ids), withdraw_address, validators)


@app.command()
def automate(
    owner: str = typer.Argument(..., help="The address of the cluster owner"),
    operator_ids: Optional[str] = typer.Option(
        None,
        "--operators",
        "-o",
        help="Comma separated operator ids (default: Lido operators without a cluster)",
    ),
    withdraw_address: Optional[str] = typer.Option(
        None, "--withdraw-address", "-w", help="Withdrawal address (default: OWNER)"
    ),
    validators: Optional[int] = typer.Option(
        None, "--validators", "-n", min=1, help="Validator keys per ceremony"
    ),
):
    """
    Onboard every Lido operator that has no cluster with OWNER yet.

    Examples:
        ssv-automate automate 0xOwner
        ssv-automate automate 0xOwner -o 42,43
    """
    _onboard(owner, parse_id_list(operator_ids), withdraw_address, validators)


@app.command()
def offboard(
    owner: str = typer.Argument(..., help="The address of the cluster owner"),
    action: OffboardAction = typer.Argument(..., help="The action to perform on the clusters"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Exit or remove the validators of OWNER's clusters, or liquidate the clusters."""
    console.print(Panel(f"Automating cluster offboarding: {action.value}", title="SSV Automate"))
    if not yes:
        typer.confirm(f"Apply '{action.value}' to every cluster of {owner}?", abort=True)

    service = OffboardingService()
    report = run_async(service.run(owner, action))

    console.print(f"Processed {len(report.processed)} cluster(s)/validator(s)")
    print_problems(report.problems, "Cluster/Validator")
    if report.problems:
        raise typer.Exit(1)


@app.command(name="merge-deposit")
def merge_deposit(
    folder: Path = typer.Argument(
        ..., help="Path to the DKG output folder (e.g. /home/user/ssv-dkg/output)"
    ),
    txhashes: Optional[str] = typer.Option(
        None,
        "--txhashes",
        "-t",
        help="Comma separated transaction hashes from which to extract validator public keys",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output file (default: ./deposit_data-<timestamp>.json)"
    ),
):
    """Merge per-validator deposit files into one deposit file."""
    service = DepositMergeService()
    path, deposits = run_async(service.merge(folder, parse_str_list(txhashes), output))
    console.print(f"[green]Wrote {len(deposits)} deposit(s) to {path}[/green]")


if __name__ == "__main__":
    app()
