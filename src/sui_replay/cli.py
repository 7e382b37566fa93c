import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sui_replay.artifacts import load_replay_dir
from sui_replay.bcs import CONTEXT_ADDRESS, CONTEXT_AMOUNT, CONTEXT_GENERAL, decode_pure
from sui_replay.constants import MAX_VALUE_LENGTH
from sui_replay.errors import AggregationError, ArtifactLoadError
from sui_replay.gas import GasLedger
from sui_replay.inference import ResolvedArgument, ResolvedCommand
from sui_replay.logging import InspectionLog, default_run_id
from sui_replay.move_type import MoveType, display_string, is_known, parse_type_string, qualified_string
from sui_replay.transaction import Transaction

logger = logging.getLogger(__name__)

console = Console()

_STATUS_STYLES = {
    "Created": "green",
    "Modified": "yellow",
    "Deleted": "red",
    "Accessed": "dim",
}


def _type_renderer(qualified: bool):
    if qualified:
        return lambda t: qualified_string(t, padded=True)
    return display_string


def _format_argument(arg: ResolvedArgument, render) -> str:
    text = f"{arg.label}: {render(arg.move_type)}"
    if arg.value is not None:
        text += f" = {arg.value.display(MAX_VALUE_LENGTH)}"
    elif arg.object_id is not None:
        text += f" ({arg.object_id})"
    return text


def _format_returns(returns: tuple[MoveType, ...], render) -> str:
    if not returns:
        return "void"
    return ", ".join(render(t) for t in returns)


def _fmt_int(v: int | None) -> str:
    return "-" if v is None else f"{v:,}"


def print_overview(tx: Transaction) -> None:
    status = "-"
    if tx.status is not None:
        status = "[green]success[/green]" if tx.status.success else f"[red]failure[/red] {tx.status.error}"
    lines = [
        f"[bold]Digest:[/bold] {tx.digest or '-'}",
        f"[bold]Sender:[/bold] {tx.sender}",
        f"[bold]Kind:[/bold] {tx.kind_name or '-'}",
        f"[bold]Status:[/bold] {status}",
        f"[bold]Epoch:[/bold] {_fmt_int(tx.epoch)}  [bold]Checkpoint:[/bold] {_fmt_int(tx.checkpoint)}"
        f"  [bold]Protocol:[/bold] {tx.protocol_version if tx.protocol_version is not None else '-'}",
        f"[bold]Network:[/bold] {tx.network or '-'}",
    ]
    console.print(Panel.fit("\n".join(lines), title="Transaction", border_style="blue"))


def print_commands(commands: tuple[ResolvedCommand, ...], render) -> None:
    table = Table(title="Commands", show_header=True)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Command", style="bold")
    table.add_column("Arguments")
    table.add_column("Returns", style="magenta")
    for rc in commands:
        args = "\n".join(_format_argument(a, render) for a in rc.arguments) or "-"
        table.add_row(str(rc.index), rc.display_name, args, _format_returns(rc.returns, render))
    console.print(table)


def print_objects(tx: Transaction, render) -> None:
    table = Table(title="Objects", show_header=True)
    table.add_column("Object", style="cyan", overflow="fold")
    table.add_column("Version", justify="right")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Source", style="dim")
    for o in tx.objects:
        t = o.move_type
        style = _STATUS_STYLES.get(o.status.value, "")
        table.add_row(
            o.object_id,
            "-" if o.version is None else str(o.version),
            render(t) if t is not None else "unknown",
            f"[{style}]{o.status.value}[/{style}]" if style else o.status.value,
            o.source.value,
        )
    console.print(table)


def print_gas(gas: GasLedger) -> None:
    table = Table(title="Gas", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in (
        ("Budget", gas.budget),
        ("Price", gas.price),
        ("Computation cost", gas.computation_cost),
        ("Storage cost", gas.storage_cost),
        ("Storage rebate", gas.storage_rebate),
        ("Non-refundable fee", gas.non_refundable_fee),
        ("Net gas charges", gas.net_gas_charges),
    ):
        table.add_row(name, _fmt_int(value))
    console.print(table)

    if not gas.per_object_breakup:
        return
    breakup = Table(title=f"Storage by object (rebate rate {gas.effective_rebate_rate})", show_header=True)
    breakup.add_column("Object", style="cyan", overflow="fold")
    breakup.add_column("Category")
    breakup.add_column("Size", justify="right")
    breakup.add_column("Storage cost", justify="right")
    breakup.add_column("Rebate", justify="right")
    breakup.add_column("Non-refundable", justify="right")
    breakup.add_column("Net rebate", justify="right")
    for row in gas.per_object_breakup:
        breakup.add_row(
            row.object_id,
            row.category.value,
            _fmt_int(row.size),
            _fmt_int(row.storage_cost),
            _fmt_int(row.storage_rebate),
            _fmt_int(row.non_refundable_fee),
            _fmt_int(row.net_rebate),
        )
    console.print(breakup)


def inspect(args) -> None:
    replay_dir: Path = args.replay_dir
    try:
        tx = Transaction.from_artifacts(load_replay_dir(replay_dir))
    except (AggregationError, ArtifactLoadError) as e:
        logger.debug(f"Aggregation failed: {e.to_dict()}")
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        sys.exit(2)

    render = _type_renderer(args.qualified)
    print_overview(tx)
    print_commands(tx.commands, render)
    print_objects(tx, render)
    print_gas(tx.gas)

    if tx.diagnostics:
        console.print(
            Panel.fit(
                "\n".join(f"Cmd_{d.command} {d.argument or ''}: {d.message}" for d in tx.diagnostics),
                title="[yellow]Diagnostics[/yellow]",
                border_style="yellow",
            )
        )

    if args.log_dir is not None:
        run_id = args.run_id or default_run_id(prefix="inspect")
        log = InspectionLog(base_dir=args.log_dir, run_id=run_id)
        log.event("inspection_started", replay_dir=str(replay_dir))
        log.record_transaction(tx, replay_dir=str(replay_dir))
        log.event("inspection_finished", commands=len(tx.commands), diagnostics=len(tx.diagnostics))
        logger.info(f"Wrote inspection log to {log.paths.root}")


def decode(args) -> None:
    text = args.hex[2:] if args.hex.lower().startswith("0x") else args.hex
    try:
        data = bytes.fromhex(text)
    except ValueError:
        console.print(f"[bold red]Error:[/bold red] not a hex string: {args.hex!r}")
        sys.exit(2)

    declared = parse_type_string(args.type) if args.type else None
    if declared is not None and not is_known(declared):
        console.print(f"[yellow]Unrecognized type {args.type!r}; inferring from length[/yellow]")
    value = decode_pure(data, declared, args.context)
    status = "[green]decoded[/green]" if value.decoded else "[yellow]raw[/yellow]"
    console.print(f"type: {value.type_name or 'unknown'} ({status})")
    console.print(f"value: {value.display()}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Inspect Sui transaction replay artifacts")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_inspect = subparsers.add_parser("inspect", help="Aggregate and display a replay directory")
    p_inspect.add_argument("replay_dir", type=Path, help="Directory containing the replay JSON artifacts")
    p_inspect.add_argument("--qualified", action="store_true", help="Show fully qualified type names")
    p_inspect.add_argument("--log-dir", type=Path, default=None, help="Write a JSONL inspection log under this dir")
    p_inspect.add_argument("--run-id", type=str, default=None, help="Run id for the JSONL log (default: generated)")

    p_decode = subparsers.add_parser("decode", help="Decode one BCS-encoded pure value")
    p_decode.add_argument("hex", help="Hex bytes, with or without 0x")
    p_decode.add_argument("--type", type=str, default=None, help="Move type, e.g. u64 or vector<u8>")
    p_decode.add_argument(
        "--context",
        choices=[CONTEXT_GENERAL, CONTEXT_AMOUNT, CONTEXT_ADDRESS],
        default=CONTEXT_GENERAL,
        help="Hint for length-based inference when no type is given",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "inspect":
        inspect(args)
    elif args.command == "decode":
        decode(args)


if __name__ == "__main__":
    main()
