"""
CLI Main - Typer-based command-line interface.

Usage:
    sampachat init
    sampachat reindex
    sampachat search "PL 680/2025"
    sampachat search "mobilidade urbana" --exclude "Autor=Keit Lima"
    sampachat serve
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

app = typer.Typer(
    name="sampachat",
    help="SampaChat - Legislative proposal search",
    add_completion=False,
)
console = Console()


def parse_exclusions(values: list[str]) -> dict[str, list[str]]:
    """Turn repeated ``Facet=Value`` options into an excluded-filters map."""
    excluded: dict[str, list[str]] = {}
    for item in values:
        facet, sep, value = item.partition("=")
        if not sep or not facet.strip() or not value.strip():
            raise typer.BadParameter(f"Expected Facet=Value, got {item!r}")
        excluded.setdefault(facet.strip(), []).append(value.strip())
    return excluded


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    page: int = typer.Option(0, "--page", "-p", min=0, help="Zero-based page"),
    size: int = typer.Option(10, "--size", "-n", min=1, help="Results per page"),
    exclude: list[str] = typer.Option([], "--exclude", "-x", help="Excluded facet, e.g. Ano=2020"),
) -> None:
    """Search legislative proposals."""
    asyncio.run(_search_async(query, page, size, parse_exclusions(exclude)))


async def _search_async(
    query: str,
    page: int,
    size: int,
    excluded: dict[str, list[str]],
) -> None:
    """Async search implementation."""
    from sampachat.domains.search import SearchQuery
    from sampachat.interfaces.api.deps import cleanup_services, get_search_engine, init_services

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Searching...", total=None)
        await init_services()
        try:
            response = await get_search_engine().search(
                SearchQuery(query=query, page=page, size=size, excluded_filters=excluded)
            )
        finally:
            await cleanup_services()

    if response.applied_filters:
        filters = "  ".join(f"{k}: {', '.join(v)}" for k, v in response.applied_filters.items())
        console.print(f"[cyan]Filters:[/cyan] {filters}")

    if not response.results:
        console.print("[yellow]No proposals found.[/yellow]")
        return

    table = Table(title=f"{response.total_count} proposals (page {response.page + 1})")
    table.add_column("Proposal", style="cyan", no_wrap=True)
    table.add_column("Author", style="green")
    table.add_column("Summary")
    for result in response.results:
        table.add_row(
            f"{result.type.value} {result.number}/{result.year}",
            result.author or "-",
            (result.summary or "")[:120],
        )
    console.print(table)

    if response.has_more:
        console.print(f"[dim]More results: --page {response.page + 1}[/dim]")


@app.command()
def reindex(
    batch_size: int = typer.Option(64, "--batch-size", "-b", min=1, help="Embedding batch size"),
) -> None:
    """Rebuild the FAISS index from every stored proposal."""
    asyncio.run(_reindex_async(batch_size))


async def _reindex_async(batch_size: int) -> None:
    """Async reindex implementation."""
    from sampachat.adapters.faiss import FAISSIndex
    from sampachat.config import get_settings
    from sampachat.interfaces.api.deps import get_embedder, get_sqlite_repository

    settings = get_settings()
    repo = get_sqlite_repository()
    embedder = get_embedder()
    index = FAISSIndex(dimension=settings.embedding_dimension)
    await index.initialize()

    await repo.initialize()
    try:
        proposals = await repo.all_proposals()
    finally:
        await repo.close()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Embedding proposals...", total=len(proposals))
        for start in range(0, len(proposals), batch_size):
            batch = proposals[start : start + batch_size]
            texts = [f"{p.summary or ''} {p.keyword_text}".strip() for p in batch]
            vectors = await embedder.embed_many(texts, batch_size=batch_size)
            await index.add_vectors([p.id for p in batch], vectors)
            progress.advance(task, len(batch))

    await index.save(settings.faiss_index_path)
    console.print(f"\n[green]Indexed {index.size} proposals[/green]")
    console.print(f"[dim]Index: {settings.faiss_index_path}[/dim]")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    console.print("\n[green]Starting SampaChat API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "sampachat.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def init(
    data_dir: Path | None = typer.Option(None, "--data", "-d", help="Data directory"),
) -> None:
    """Initialize SampaChat database and index directories."""
    asyncio.run(_init_async(data_dir))


async def _init_async(data_dir: Path | None) -> None:
    """Async initialization."""
    from sampachat.adapters.sqlite import SQLiteRepository
    from sampachat.config import get_settings

    settings = get_settings()
    data_path = data_dir or Path(settings.data_dir)
    db_path = data_path / settings.db_path.name if data_dir else settings.db_path

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Initializing...", total=2)

        progress.update(task, description="Creating directories...")
        data_path.mkdir(parents=True, exist_ok=True)
        settings.faiss_index_path.mkdir(parents=True, exist_ok=True)
        progress.advance(task)

        progress.update(task, description="Initializing SQLite database...")
        repo = SQLiteRepository(db_path)
        await repo.initialize()
        count = await repo.count()
        await repo.close()
        progress.advance(task)

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {db_path} ({count} proposals)[/dim]")


@app.command()
def version() -> None:
    """Show version information."""
    from sampachat import __version__

    console.print(f"SampaChat v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
