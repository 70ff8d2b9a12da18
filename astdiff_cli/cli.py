"""Typer-based CLI for structural JavaScript diffs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import toml
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__, config, config_manager
from .cli_watch import watch
from .diff_engine import DiffResult, StructuralDiffEngine, categorize
from .parser import ParseError, ParseOptions
from .report import count_changes, index_to_position
from .report_export import build_tree, render_page, report_to_json
from .storage import SnapshotStore

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    help="🌳 astdiff: structural diffs of JavaScript files over syntax trees.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration: parser and watch settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")

app.command("watch")(watch)

FORMATS = ("text", "json", "html")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"astdiff v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine details to stderr."),
):
    """astdiff: compare two versions of a JavaScript file statement by statement."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _options(ecma_version: Optional[str], source_type: Optional[str]) -> ParseOptions:
    try:
        return config_manager.parser_options(ecma_version, source_type)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


def _read(path: Path) -> str:
    if path.suffix.lower() not in config.SUPPORTED_EXTENSIONS:
        logger.warning("%s does not look like a JavaScript file; parsing anyway", path.name)
    return path.read_text(encoding="utf-8")


def _run_diff(source_a: str, source_b: str, options: ParseOptions, name_a: str, name_b: str) -> DiffResult:
    def annotate(side: str, error: ParseError) -> None:
        name = name_a if side == "a" else name_b
        console.print(f"[red]●[/red] {name}:{error.line}:{error.column}", highlight=False)

    try:
        return StructuralDiffEngine(options, annotate=annotate).diff(source_a, source_b)
    except ParseError as exc:
        console.print(f"[red]✗ Parsing error:[/red] {escape(str(exc))}", highlight=False)
        raise typer.Exit(code=1)


def _emit(result: DiffResult, output_format: str, output: Optional[Path], show_unchanged: bool) -> None:
    if output_format == "json":
        payload = report_to_json(result)
    elif output_format == "html":
        payload = render_page(result)
    else:
        payload = None

    if payload is not None:
        if output is not None:
            output.write_text(payload, encoding="utf-8")
            typer.echo(f"Wrote {output_format} report to {output}")
        else:
            typer.echo(payload)
        return

    console.print(build_tree(result.report, show_unchanged=show_unchanged))
    counts = count_changes(result.report)
    console.print(
        " | ".join(f"{name.capitalize()}: {n}" for name, n in counts.items()),
        style="dim",
    )


def _check_format(output_format: str) -> str:
    output_format = output_format.lower()
    if output_format not in FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(FORMATS)}")
    return output_format


def _position(source: str, offset: int) -> str:
    row, column = index_to_position(source, offset)
    return f"{row + 1}:{column}"


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

@app.command("diff")
def diff(
    old_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Old version (A)."),
    new_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="New version (B)."),
    output_format: str = typer.Option("text", "--format", "-f", help="text, json or html."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report to a file."),
    show_unchanged: bool = typer.Option(False, "--all", "-a", help="Include unchanged statements."),
    ecma_version: Optional[str] = typer.Option(None, "--ecma-version", help="ECMAScript edition or 'latest'."),
    source_type: Optional[str] = typer.Option(None, "--source-type", help="module or script."),
):
    """Show the structural diff between two files."""
    output_format = _check_format(output_format)
    options = _options(ecma_version, source_type)
    result = _run_diff(_read(old_file), _read(new_file), options, old_file.name, new_file.name)
    _emit(result, output_format, output, show_unchanged)


@app.command("locate")
def locate(
    old_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Old version (A)."),
    new_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="New version (B)."),
    summary_id: str = typer.Argument(..., help="Summary id shown next to a change, e.g. sum_id_3."),
    ecma_version: Optional[str] = typer.Option(None, "--ecma-version", help="ECMAScript edition or 'latest'."),
    source_type: Optional[str] = typer.Option(None, "--source-type", help="module or script."),
):
    """Print where a summary line points to in each file."""
    options = _options(ecma_version, source_type)
    result = _run_diff(_read(old_file), _read(new_file), options, old_file.name, new_file.name)
    target = result.registry.resolve(summary_id)
    if target is None:
        raise typer.BadParameter(f"No change with id '{summary_id}'.")

    typer.echo(f"{target.type.value} {result.registry.get(summary_id).key}")
    if target.range_a is not None:
        typer.echo(
            f"  {old_file.name}: {_position(result.source_a, target.range_a.start)}"
            f" - {_position(result.source_a, target.range_a.end)}"
        )
    if target.range_b is not None:
        typer.echo(
            f"  {new_file.name}: {_position(result.source_b, target.range_b.start)}"
            f" - {_position(result.source_b, target.range_b.end)}"
        )


# ------------------------------------------------------------------
# Snapshots
# ------------------------------------------------------------------

def _open_store() -> SnapshotStore:
    config.ensure_base_dirs()
    return SnapshotStore(config.DB_FILE)


def _file_key(path: Path) -> str:
    return str(path.resolve())


@app.command("snapshot")
def snapshot(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to record."),
    ecma_version: Optional[str] = typer.Option(None, "--ecma-version", help="ECMAScript edition or 'latest'."),
    source_type: Optional[str] = typer.Option(None, "--source-type", help="module or script."),
):
    """Record the current contents of a file as a new version."""
    options = _options(ecma_version, source_type)
    source = _read(file)
    try:
        entries = categorize(source, options)
    except ParseError as exc:
        console.print(f"[red]✗ Parsing error:[/red] {escape(str(exc))}", highlight=False)
        raise typer.Exit(code=1)

    store = _open_store()
    fv_id = store.record_version(_file_key(file), source, entries)
    store.close()
    typer.echo(f"Recorded {file.name} as version {fv_id} ({len(entries)} statements).")


@app.command("history")
def history(file: Path = typer.Argument(..., dir_okay=False, help="Tracked file.")):
    """List recorded versions of a file."""
    store = _open_store()
    versions = store.list_versions(_file_key(file))
    store.close()

    if not versions:
        typer.echo(f"No versions recorded for {file.name}.")
        raise typer.Exit(code=0)

    table = Table(title=f"Versions of {file.name}")
    table.add_column("Version", justify="right")
    table.add_column("Recorded")
    table.add_column("Statements", justify="right")
    table.add_column("Hash")
    for v in versions:
        table.add_row(str(v.fv_id), v.created_at, str(v.statement_count), v.file_hash[:12])
    console.print(table)


@app.command("since")
def since(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Tracked file."),
    version: Optional[int] = typer.Option(None, "--version", help="Version id (default: latest)."),
    output_format: str = typer.Option("text", "--format", "-f", help="text, json or html."),
    ecma_version: Optional[str] = typer.Option(None, "--ecma-version", help="ECMAScript edition or 'latest'."),
    source_type: Optional[str] = typer.Option(None, "--source-type", help="module or script."),
):
    """Diff a recorded version against the file on disk."""
    output_format = _check_format(output_format)
    options = _options(ecma_version, source_type)
    store = _open_store()
    key = _file_key(file)
    info = store.get_version(version) if version is not None else store.latest_version(key)
    if info is None or info.file_name != key:
        store.close()
        raise typer.BadParameter(f"No recorded version of {file.name}. Run 'astdiff snapshot' first.")
    old_source = store.get_source(info.fv_id) or ""
    store.close()

    result = _run_diff(old_source, _read(file), options, f"{file.name}@{info.fv_id}", file.name)
    _emit(result, output_format, None, False)


@app.command("declarations")
def declarations(name: str = typer.Argument(..., help="Function or variable name.")):
    """Find every recorded declaration of a name."""
    store = _open_store()
    rows = store.find_declarations(name)
    store.close()

    if not rows:
        typer.echo(f"No declarations of '{name}' recorded.")
        raise typer.Exit(code=0)

    for row in rows:
        typer.echo(f"v{row['fv_id']} {Path(row['file_name']).name} #{row['idx']} [{row['node_type']}]")
        if row["summary"]:
            typer.echo(f"  {row['summary']}")


# ------------------------------------------------------------------
# Config
# ------------------------------------------------------------------

@config_app.command("show")
def config_show():
    """Show effective settings."""
    typer.echo(f"# {config.CONFIG_FILE}")
    typer.echo(toml.dumps(config_manager.effective_config()))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="SECTION.KEY, e.g. parser.ecma_version"),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist one setting to the config file."""
    section, _, name = key.partition(".")
    try:
        stored = config_manager.save_setting(section, name, value)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0]))
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(f"Set {section}.{name} = {stored!r}")


if __name__ == "__main__":
    app()
