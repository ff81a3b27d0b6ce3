"""Pipestage command-line interface.

Usage::

    pipestage --help
    pipestage kinds
    pipestage stages
    pipestage validate user-stage stage.json
    pipestage run pipeline.json --max-batches 3
    pipestage version
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from pipestage.__version__ import __version__
from pipestage.observability.logging import configure_logging

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    show_default=True,
    help="Log verbosity level.",
)
@click.option(
    "--log-format",
    default="console",
    type=click.Choice(["console", "json"], case_sensitive=False),
    show_default=True,
    help="Log output format.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_format: str) -> None:
    """Pipestage: pluggable transform stages for batch ETL pipelines."""
    ctx.ensure_object(dict)
    configure_logging(level=log_level, fmt=log_format.lower())  # type: ignore[arg-type]


# --------------------------------------------------------------------------- #
#  pipestage version                                                           #
# --------------------------------------------------------------------------- #


@cli.command()
def version() -> None:
    """Print the pipestage version."""
    console.print(f"[bold cyan]pipestage[/] v{__version__}")


# --------------------------------------------------------------------------- #
#  pipestage kinds / stages                                                    #
# --------------------------------------------------------------------------- #


@cli.command()
def kinds() -> None:
    """List every stage kind and the fields its config requires."""
    from pipestage.core.configs import extract_configs, transform_configs  # noqa: PLC0415

    for configs in (extract_configs, transform_configs):
        table = Table(title=f"{configs.phase.upper()} KINDS")
        table.add_column("kind", style="green")
        table.add_column("fields")
        for kind, fields in configs.describe().items():
            table.add_row(kind, ", ".join(fields))
        console.print(table)


@cli.command()
def stages() -> None:
    """List all registered stage plugins."""
    import pipestage.plugins  # noqa: F401, PLC0415
    from pipestage.core.registry import registry  # noqa: PLC0415

    data = registry.all_stages()

    for category, names in data.items():
        table = Table(title=category.upper(), show_header=False, box=None)
        table.add_column("name", style="green")
        for n in names:
            table.add_row(n)
        console.print(table)

    if not any(data.values()):
        console.print("[yellow]No stages registered. Import your plugins first.[/]")


# --------------------------------------------------------------------------- #
#  pipestage validate                                                          #
# --------------------------------------------------------------------------- #


@cli.command()
@click.argument("kind")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--phase",
    default="transform",
    type=click.Choice(["transform", "extract"]),
    show_default=True,
    help="Which phase's kinds to decode against.",
)
def validate(kind: str, file: Path, phase: str) -> None:
    """Decode a stage config FILE under KIND and print its canonical form."""
    from pipestage.core.configs import extract_configs, transform_configs  # noqa: PLC0415
    from pipestage.core.errors import ConfigParseError  # noqa: PLC0415

    configs = transform_configs if phase == "transform" else extract_configs
    try:
        config = configs.decode_json(kind, file.read_text(encoding="utf-8"))
    except KeyError as exc:
        err_console.print(f"[red]Error:[/] {escape(str(exc.args[0]))}")
        sys.exit(2)
    except ConfigParseError as exc:
        err_console.print(f"[red]Invalid '{exc.kind}' config[/] in {file}:")
        for problem in exc.problems:
            err_console.print(f"  - {escape(str(problem))}")
        sys.exit(1)

    click.echo(json.dumps(configs.encode(kind, config), indent=2, sort_keys=True))


# --------------------------------------------------------------------------- #
#  pipestage run                                                               #
# --------------------------------------------------------------------------- #


@cli.command()
@click.argument("definition", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--max-batches", default=None, type=int, help="Stop after N batches.")
@click.option("--show-rows", default=10, show_default=True, help="Rows to print per batch.")
@click.option("--quiet", is_flag=True, default=False, help="Do not print output batches.")
def run(definition: Path, max_batches: Optional[int], show_rows: int, quiet: bool) -> None:
    """Run the pipeline described by a DEFINITION file."""
    from pipestage.core.errors import PipestageError  # noqa: PLC0415
    from pipestage.core.pipeline import Pipeline, PipelineDefinition  # noqa: PLC0415
    from pipestage.models.batch import Batch  # noqa: PLC0415

    try:
        data = _load_json(definition)
    except (OSError, ValueError) as exc:
        err_console.print(f"[red]Error:[/] cannot read {escape(str(definition))}: {escape(str(exc))}")
        sys.exit(2)
    if max_batches is not None:
        data["max_batches"] = max_batches

    try:
        pipeline = Pipeline.from_definition(PipelineDefinition.model_validate(data))
    except (PipestageError, KeyError, TypeError, ValueError) as exc:
        err_console.print(f"[red]Error:[/] {escape(str(exc))}")
        sys.exit(2)

    def _print_batch(batch: Batch) -> None:
        table = Table(show_lines=False)
        for name in batch.field_names:
            table.add_column(name)
        for i, row in enumerate(batch.rows()):
            if i >= show_rows:
                break
            table.add_row(*(_cell(v) for v in row))
        console.print(table)

    result = pipeline.run(on_batch=None if quiet else _print_batch)
    console.print(result.summary(), markup=False)

    if not result.ok:
        sys.exit(1)


def _cell(value: object) -> Text:
    if value is None:
        return Text("null", style="dim")
    if isinstance(value, bytes):
        return Text(repr(value))
    return Text(str(value))


def _load_json(path: Path) -> dict:
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"a pipeline definition must be a JSON object, got {type(data).__name__}")
    return data
