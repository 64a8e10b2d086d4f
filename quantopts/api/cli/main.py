"""
quantopts CLI - Command Line Interface

Inspect, convert and query quantization option files.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from quantopts.errors import QuantizationOptionsError
from quantopts.resolve import find_unit_override, resolve_precision
from quantopts.schema.io import load_options, save_options
from quantopts.schema.spec import QuantizationOptions, UnitType
from quantopts.schema.wire import proto_source
from quantopts.settings import get_settings
from quantopts.version import __version__

# Initialize Typer app
app = typer.Typer(
    name="quantopts",
    help="quantopts - mixed-precision quantization options",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Rich console for pretty output
console = Console()
err_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Output format options."""
    text = "text"
    json = "json"


class FileFormat(str, Enum):
    """Options file formats."""
    json = "json"
    text = "text"
    binary = "binary"


class UnitKind(str, Enum):
    """Unit granularity for precision lookups."""
    node = "node"
    op = "op"


_UNIT_TYPES = {
    UnitKind.node: UnitType.UNIT_NODE,
    UnitKind.op: UnitType.UNIT_OP,
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load(path: Path, fmt: Optional[FileFormat]) -> QuantizationOptions:
    """Load options or exit with an error message."""
    try:
        return load_options(path, fmt.value if fmt else None)
    except (QuantizationOptionsError, OSError) as e:
        console.print(f"[red]❌ Failed to load {escape(str(path))}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"quantopts [bold]{__version__}[/bold]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version", "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Logging level (default: QUANTOPTS_LOG_LEVEL or WARNING)."),
    ] = None,
) -> None:
    """
    quantopts - mixed-precision quantization options

    Inspect and convert QuantizationOptions files (JSON, protobuf text or
    binary) and look up the precision that applies to a node or op.
    """
    try:
        settings = get_settings()
        _configure_logging(log_level or settings.log_level)
    except ValueError as e:
        console.print(f"[red]❌ Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _describe_options(options: QuantizationOptions) -> Table:
    table = Table(
        title="[bold cyan]Quantization Options[/bold cyan]",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    method = options.quantization_method
    if method is None:
        method_str = "none (do not quantize)"
    elif method.choice is None:
        method_str = "[red]unset[/red]"
    else:
        method_str = f"{method.which_oneof}: {method.choice.name}"

    min_elements = options.min_num_elements_for_weights
    per_channel = str(options.enable_per_channel_quantization)
    if options.enable_per_channel_quantization and not options.per_channel_applies:
        per_channel += " [yellow](ignored outside UNIFORM_QUANTIZED)[/yellow]"

    table.add_row("quantization_method", method_str)
    table.add_row("op_set", options.effective_op_set.name)
    table.add_row("quantization_precision", options.quantization_precision.name)
    table.add_row(
        "min_num_elements_for_weights",
        f"{min_elements} (disabled)" if min_elements == -1 else str(min_elements),
    )
    table.add_row("freeze_all_variables", str(options.freeze_all_variables.enabled))
    table.add_row("enable_per_channel_quantization", per_channel)
    return table


def _describe_overrides(options: QuantizationOptions) -> Table:
    table = Table(
        title="[bold cyan]Unit-wise Overrides[/bold cyan]",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Function", style="white")
    table.add_column("Unit", style="green")
    table.add_column("Precision", style="yellow")

    for i, unit in enumerate(options.unit_wise_quantization_precision):
        table.add_row(
            str(i),
            unit.unit_type.name,
            escape(unit.func_name) if unit.func_name else "[dim]*[/dim]",
            escape(unit.unit_name),
            unit.quantization_precision.name,
        )
    return table


@app.command()
def show(
    path: Annotated[Path, typer.Argument(help="Options file to inspect")],
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format"),
    ] = OutputFormat.text,
    input_format: Annotated[
        Optional[FileFormat],
        typer.Option("--input-format", "-i", help="Input format (default: from extension)"),
    ] = None,
) -> None:
    """
    Show options with defaults applied.

    Examples:
        quantopts show options.pbtxt
        quantopts show options.pb --format json
    """
    options = _load(path, input_format)

    if output_format == OutputFormat.json:
        console.print_json(options.to_json())
        return

    console.print(_describe_options(options))
    if options.unit_wise_quantization_precision:
        console.print(_describe_overrides(options))
    else:
        console.print("[dim]No unit-wise overrides[/dim]")


@app.command()
def convert(
    path: Annotated[Path, typer.Argument(help="Options file to convert")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Output file")],
    to: Annotated[
        Optional[FileFormat],
        typer.Option("--to", "-t", help="Output format (default: from extension)"),
    ] = None,
    input_format: Annotated[
        Optional[FileFormat],
        typer.Option("--input-format", "-i", help="Input format (default: from extension)"),
    ] = None,
) -> None:
    """
    Convert an options file between JSON, text and binary formats.

    Examples:
        quantopts convert options.json -o options.pb
        quantopts convert options.pb -o options.cfg --to text
    """
    options = _load(path, input_format)
    try:
        written = save_options(options, output, to.value if to else None)
    except (QuantizationOptionsError, OSError, ValueError) as e:
        console.print(f"[red]❌ Conversion failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Wrote [bold]{written}[/bold]")


@app.command()
def precision(
    path: Annotated[Path, typer.Argument(help="Options file")],
    unit: Annotated[str, typer.Argument(help="Node or op name")],
    func: Annotated[
        str,
        typer.Option("--func", "-f", help="Function definition containing the unit"),
    ] = "",
    unit_type: Annotated[
        Optional[UnitKind],
        typer.Option("--type", "-t", help="Unit granularity"),
    ] = None,
    input_format: Annotated[
        Optional[FileFormat],
        typer.Option("--input-format", "-i", help="Input format (default: from extension)"),
    ] = None,
) -> None:
    """
    Look up the precision that applies to a node or op.

    Examples:
        quantopts precision options.pbtxt conv1
        quantopts precision options.pbtxt MatMul_1 --func serving_default --type node
    """
    options = _load(path, input_format)
    kind = _UNIT_TYPES[unit_type] if unit_type else None
    try:
        override = find_unit_override(options, unit, func, kind)
        result = resolve_precision(options, unit, func, kind)
    except QuantizationOptionsError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(1)

    source = "unit override" if override is not None else "default"
    console.print(Panel.fit(
        f"[bold]Unit:[/bold] [green]{escape(unit)}[/green]\n"
        f"[bold]Precision:[/bold] [yellow]{result.name}[/yellow] [dim]({source})[/dim]",
        title="[bold blue]Precision[/bold blue]",
        border_style="blue",
    ))


@app.command()
def proto() -> None:
    """Print the .proto definition of the options schema."""
    typer.echo(proto_source(), nl=False)
