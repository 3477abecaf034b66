"""Operator command line for indexing and inspecting a project."""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from . import __version__
from .config import load_config
from .errors import DimensionMismatchError, TddRagError
from .indexer_logging import setup_logging
from .indexing.types import IndexingProgress, IndexingStage
from .service import RagService
from .storage.vector_store import DimensionResolution

T = TypeVar("T")


def resolve_dimension_interactively(
    mismatch: DimensionMismatchError,
) -> DimensionResolution:
    click.echo(f"⚠️  {mismatch.message}", err=True)
    if click.confirm(
        "Recreate the collection? This deletes all stored embeddings", default=False
    ):
        return DimensionResolution.RECREATE
    click.echo("Adapting new embeddings to the existing dimension", err=True)
    return DimensionResolution.ADAPT


def echo_progress(progress: IndexingProgress) -> None:
    if progress.stage is IndexingStage.COMPLETE:
        click.echo(f"✅ {progress.message}")
        return
    detail = f" {Path(progress.current_file).name}" if progress.current_file else ""
    message = f" - {progress.message}" if progress.message else ""
    click.echo(
        f"[{progress.stage.value:>9}] {progress.current}/{progress.total} "
        f"({progress.percentage:.0f}%){detail}{message}"
    )


def common_options(f: Callable[..., Any]) -> Callable[..., Any]:
    f = click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")(f)
    f = click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")(f)
    f = click.option(
        "--project",
        "-p",
        type=click.Path(exists=True, file_okay=False),
        default=".",
        help="Project directory (default: current directory)",
    )(f)
    return f


def _build_service(project: str, verbose: bool, quiet: bool, **kwargs: Any) -> RagService:
    if quiet and verbose:
        click.echo("Error: --quiet and --verbose are mutually exclusive", err=True)
        sys.exit(1)

    project_path = Path(project).resolve()
    setup_logging(
        quiet=quiet,
        verbose=verbose,
        enable_file_logging=True,
        project_path=project_path,
    )
    config = load_config(project_path)
    return RagService(
        project_path,
        config=config,
        dimension_resolver=resolve_dimension_interactively,
        **kwargs,
    )


def _run(
    service: RagService,
    action: Callable[[RagService], Awaitable[T]],
    watch: bool = False,
) -> T:
    async def runner() -> T:
        await service.start(watch=watch)
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(runner())
    except TddRagError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """tdd-rag - code-aware indexing and retrieval for test-driven development."""


@cli.command()
@common_options
def index(project: str, verbose: bool, quiet: bool) -> None:
    """Index every supported file of the project."""
    service = _build_service(
        project, verbose, quiet, progress_sink=None if quiet else echo_progress
    )
    ok = _run(service, lambda s: s.index_project())
    if not ok:
        click.echo("⚠️  Indexing finished with errors, see the log for details", err=True)
        sys.exit(1)


@cli.command()
@common_options
@click.confirmation_option(prompt="Delete all indexed embeddings for this project?")
def clear(project: str, verbose: bool, quiet: bool) -> None:
    """Remove this project's embeddings and index state."""
    service = _build_service(project, verbose, quiet)
    if not _run(service, lambda s: s.clear_index()):
        click.echo("❌ Failed to clear index", err=True)
        sys.exit(1)
    if not quiet:
        click.echo("🧹 Index cleared")


@cli.command()
@common_options
@click.argument("query")
@click.option("--feature", default="", help="Feature being developed")
@click.option("--limit", type=int, default=15, help="Maximum results per namespace")
@click.option("--untested", is_flag=True, help="Only keep source without detected tests")
@click.option("--as-json", "as_json", is_flag=True, help="Print the context document")
def query(
    project: str,
    verbose: bool,
    quiet: bool,
    query: str,
    feature: str,
    limit: int,
    untested: bool,
    as_json: bool,
) -> None:
    """Retrieve source and test chunks similar to QUERY."""
    service = _build_service(project, verbose, quiet)
    document = _run(
        service,
        lambda s: s.build_context(
            query, feature=feature, max_results=limit, untested_only=untested
        ),
    )

    if as_json:
        click.echo(document.to_json())
        return

    code = document.source.get("code", {})
    tests = document.tests.get("code", {})
    if not code and not tests:
        click.echo(f"🔍 No results found for: {query}")
        return
    click.echo(f"🔍 Results for: {query}")
    for label, files in (("Source", code), ("Tests", tests)):
        if not files:
            continue
        click.echo(f"\n{label}:")
        for file_path, symbols in files.items():
            for name in symbols:
                click.echo(f"  {file_path}  {name}")


@cli.command()
@common_options
def status(project: str, verbose: bool, quiet: bool) -> None:
    """Show index statistics."""
    service = _build_service(project, verbose, quiet)
    info = _run(service, lambda s: s.status())
    click.echo(json.dumps(info, indent=2, default=str))


@cli.command()
@common_options
def cleanup(project: str, verbose: bool, quiet: bool) -> None:
    """Drop index entries for files that were deleted long ago."""
    service = _build_service(project, verbose, quiet)

    async def action(s: RagService) -> int:
        assert s.index_manager is not None
        return await s.index_manager.run_cleanup()

    removed = _run(service, action)
    if not quiet:
        click.echo(f"🧹 Removed {removed} stale files")


@cli.command()
@common_options
@click.option("--no-initial", is_flag=True, help="Skip the initial indexing pass")
def watch(project: str, verbose: bool, quiet: bool, no_initial: bool) -> None:
    """Index the project and keep the index current until interrupted."""
    service = _build_service(
        project, verbose, quiet, progress_sink=None if quiet else echo_progress
    )

    async def action(s: RagService) -> None:
        assert s.index_manager is not None
        if no_initial:
            s.index_manager.set_watched_files(s.discover_files())
        else:
            await s.index_project()
        if not quiet:
            click.echo("👁️  Watching for changes, press Ctrl+C to stop")
        await asyncio.Event().wait()

    try:
        _run(service, action, watch=True)
    except KeyboardInterrupt:
        if not quiet:
            click.echo("\n🛑 Stopped watching")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
