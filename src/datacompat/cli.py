from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from datacompat.config import DataCompatSettings, load_settings
from datacompat.emission import FileSystemSink, MemorySink
from datacompat.exceptions import ConfigError
from datacompat.host.source import SourceUnit, iter_python_files
from datacompat.logging import configure_logging, get_logger
from datacompat.session import Session, SessionResult

app = typer.Typer(add_completion=False)

_LOGGER = get_logger("cli")


@app.callback()
def main() -> None:
    """Generate builder-backed value classes from ``@data_compat`` dataclasses."""


def _source_root(units: List[SourceUnit], fallback: Path) -> Path:
    """Directory that module names are relative to, derived from the first unit with a path."""
    for unit in units:
        if unit.path is None:
            continue
        depth = len(unit.module_name.split("."))
        if not unit.is_package:
            depth -= 1
        return unit.path.resolve().parents[depth]
    return fallback


def _output_root(settings: DataCompatSettings, root: Path, units: List[SourceUnit]) -> Path:
    if settings.output_dir:
        output = Path(settings.output_dir)
        return output if output.is_absolute() else root / output
    return _source_root(units, root)


def load_units(paths: List[Path], root: Path) -> List[SourceUnit]:
    return [SourceUnit.from_path(path, root) for path in iter_python_files(paths)]


def _stale_units(result: SessionResult, sink: MemorySink, target: FileSystemSink) -> List[Path]:
    stale: List[Path] = []
    for unit in result.generated:
        package, _, name = unit.module_name.rpartition(".")
        path = target.path_for(name, package)
        if not path.exists() or path.read_text(encoding="utf-8") != sink.units[unit.module_name]:
            stale.append(path)
    return stale


@app.command()
def generate(
    paths: List[Path] = typer.Argument(..., help="Source files or directories to scan."),
    root: Path = typer.Option(Path("."), "--root", help="Project root for module names and config."),
    out: Optional[Path] = typer.Option(None, "--out", help="Directory receiving generated packages."),
    config: Optional[Path] = typer.Option(None, "--config"),
    check: bool = typer.Option(
        False,
        "--check",
        help="Write nothing; fail when generated modules are missing or out of date.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also append logs to this file."),
) -> None:
    """Generate one module per ``@data_compat`` class found under PATHS."""
    configure_logging(verbose=verbose, log_file=log_file)
    try:
        settings = load_settings(
            root=root,
            config_path=config,
            overrides={"output_dir": str(out) if out is not None else None},
        )
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc

    units = load_units(paths, root)
    target = FileSystemSink(_output_root(settings, root, units))
    _LOGGER.debug("Loaded %d source unit(s); output root %s", len(units), target.root)

    if check:
        memory = MemorySink()
        result = Session(settings, memory).run(units)
        stale = _stale_units(result, memory, target)
        for path in stale:
            typer.echo(f"Out of date: {path}")
        if stale or not result.ok:
            raise typer.Exit(code=1)
        typer.echo(f"{len(result.generated)} generated module(s) up to date.")
        return

    result = Session(settings, target).run(units)
    for unit in result.generated:
        typer.echo(unit.location)
    typer.echo(f"Generated {len(result.generated)} module(s) in {result.rounds} round(s).")
    if not result.ok:
        raise typer.Exit(code=1)
