"""
Command line interface for the framework-aware chunker.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from .frameworks import build_default_registry
from .logger import configure_logging, get_logger, redirect_logging_to_file
from .services import IndexerService, IndexingCallbacks
from .settings import AppSettings, load_settings
from .storage import ChunkSink, DirectoryChunkStore, MilvusChunkStore
from .version import get_version

app = typer.Typer(name="framechunk", help="Framework-aware source chunking for code retrieval.")
log = get_logger(__name__)
console = Console()


def _settings(ctx: typer.Context) -> AppSettings:
    return ctx.obj["settings"]


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug logs to the console."),
) -> None:
    """Load settings and set up logging for every command."""
    level = logging.DEBUG if verbose else logging.INFO
    configure_logging(level=level, enable_console=verbose)
    try:
        app_settings = load_settings(config)
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid configuration: {exc}")
        raise typer.Exit(code=2)
    ctx.obj = {"settings": app_settings}


def _build_sink(app_settings: AppSettings, out: Optional[Path], milvus: bool, clear: bool) -> ChunkSink:
    if milvus:
        store = MilvusChunkStore(app_settings)
        store.connect()
        return store
    directory_store = DirectoryChunkStore(out or app_settings.output_dir)
    if clear:
        directory_store.clear()
    return directory_store


@app.command()
def chunk(
    ctx: typer.Context,
    target: Path = typer.Argument(..., help="Project directory (or single file) to chunk."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Directory receiving chunk files."),
    milvus: bool = typer.Option(False, "--milvus", help="Embed and upsert into Milvus instead of a directory."),
    knowledge: Optional[List[Path]] = typer.Option(
        None,
        "--knowledge",
        "-k",
        help="Reference document chunked alongside the sources (repeatable).",
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel parser threads."),
    clear: bool = typer.Option(False, "--clear", help="Empty the output directory first."),
    log_file: Optional[Path] = typer.Option(None, "--log", help="Write detailed logs to this file."),
) -> None:
    """Scan TARGET, chunk every claimed file and store the chunks."""
    app_settings = _settings(ctx)
    if workers is not None:
        app_settings = app_settings.model_copy(update={"max_workers": max(1, workers)})

    if not target.exists():
        typer.echo(f"[ERROR] Target path not found: {target}")
        raise typer.Exit(code=2)

    if log_file:
        redirect_logging_to_file(log_file.resolve())
        typer.echo(f"Logging detailed output to {log_file.resolve()}")

    log.info("chunk_command_started", target=str(target), milvus=milvus, workers=app_settings.max_workers)
    registry = build_default_registry(knowledge=knowledge or ())
    sink = _build_sink(app_settings, out, milvus, clear)
    service = IndexerService(registry, sink, app_settings=app_settings)

    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        file_task = progress.add_task("Chunking files", total=None)
        upsert_task = progress.add_task("Storing chunks", total=None)

        def on_scanned(total: int) -> None:
            progress.update(file_task, total=max(total, 1))

        def on_file(relative_path: str) -> None:
            progress.update(file_task, advance=1, description=f"Chunking {Path(relative_path).name}")

        def on_upsert(emitted: int) -> None:
            progress.update(upsert_task, completed=emitted, description=f"Storing chunks ({emitted})")

        def on_stage(stage: str) -> None:
            if stage == "chunk_completed":
                progress.update(file_task, description="Chunking complete")
            elif stage == "upsert_completed":
                task = progress.tasks[upsert_task]
                progress.update(upsert_task, total=task.completed or 1, description="Storage complete")

        result = service.index_directory(
            target,
            callbacks=IndexingCallbacks(
                stage=on_stage,
                scanned=on_scanned,
                file=on_file,
                upsert_progress=on_upsert,
            ),
        )

    for warning in result.warnings:
        console.print(f"[yellow]warning[/yellow] {escape(warning)}")
    typer.echo(
        f"Chunked {result.files_claimed}/{result.files_scanned} files -> "
        f"chunks={result.chunk_count} knowledge={result.knowledge_chunks} "
        f"unclaimed={len(result.unclaimed)} warnings={len(result.warnings)}"
    )
    for framework, count in sorted(result.chunks_by_framework.items()):
        typer.echo(f"  {framework}: {count}")


@app.command()
def patterns() -> None:
    """Show the registered patterns in dispatch order."""
    for row in build_default_registry().describe():
        typer.echo(
            f"- {row['framework']}:{row['name']} priority={row['priority']} "
            f"glob={row['glob']} semantic={row['semantic']}"
        )


@app.command()
def integrity(
    ctx: typer.Context,
    directory: Optional[Path] = typer.Argument(None, help="Chunk directory (defaults to the configured output)."),
) -> None:
    """Check that schema.json and the chunk content files agree."""
    root = directory or _settings(ctx).output_dir
    try:
        report = DirectoryChunkStore(root).check_integrity()
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=2)

    typer.echo(f"Valid chunks: {len(report.valid)}")
    typer.echo(f"Missing content files: {len(report.missing)}")
    typer.echo(f"Orphaned files: {len(report.orphaned)}")
    for chunk_id in report.missing:
        typer.echo(f"  missing {chunk_id}")
    for name in report.orphaned:
        typer.echo(f"  orphaned {name}.txt")
    if not report.is_valid:
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(get_version())


if __name__ == "__main__":  # pragma: no cover
    app()
