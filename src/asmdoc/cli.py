"""Command line interface for asmdoc."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from asmdoc.config import AppConfig
from asmdoc.decompiler import build_decompiler
from asmdoc.errors import AsmdocError, InvalidQuery
from asmdoc.index.indexer import Indexer
from asmdoc.index.search import CatalogQuery
from asmdoc.index.storage import SQLiteCatalogStore
from asmdoc.models import TypeInfo
from asmdoc.utils.files import find_sidecar_documentation, iter_assembly_paths
from asmdoc.web.app import app as web_app
from asmdoc.web.app import configure as configure_web


console = Console()
app = typer.Typer(help="asmdoc - documentation catalog for .NET assemblies")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_existing(db: Optional[Path]) -> SQLiteCatalogStore:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    return SQLiteCatalogStore(resolved_db)


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Assemblies or directories containing assemblies.", resolve_path=True
    ),
    doc: Optional[Path] = typer.Option(
        None, "--doc", help="Documentation XML (only with a single assembly)"
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    runtime: str = typer.Option(AppConfig().runtime, help="pythonnet runtime to load"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index one or more .NET assemblies with their XML documentation."""
    _setup_logging(verbose)
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path, runtime=runtime)

    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    module_paths = list(iter_assembly_paths(inputs))
    if not module_paths:
        console.print("[yellow]No assemblies found.[/yellow]")
        return
    if doc is not None and len(module_paths) != 1:
        raise typer.BadParameter("--doc can only be used with a single assembly")

    store = SQLiteCatalogStore(resolved_db)
    indexer = Indexer(store, runtime=config.runtime)
    console.print(f"Indexing into [bold]{resolved_db}[/bold]...")

    failed = 0
    try:
        for module_path in module_paths:
            doc_path = doc if doc is not None else find_sidecar_documentation(module_path)
            try:
                report = indexer.index_module(module_path, doc_path)
            except AsmdocError as exc:
                failed += 1
                console.print(f"[red]{escape(str(exc))}[/red]")
                continue
            console.print(
                f"{report.module_name} -> [bold]{report.module_id}[/bold]: "
                f"types: {report.types}, members: {report.members}, "
                f"documented: {report.documented}, skipped: {report.skipped}"
            )
            for warning in report.warnings:
                console.print(f"[yellow]{escape(warning)}[/yellow]")
    finally:
        store.close()

    if failed:
        raise typer.Exit(code=1)


@app.command()
def modules(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List indexed assemblies."""
    store = _open_existing(db)
    try:
        items = CatalogQuery(store).list_modules()
        counts = {item.id: store.count_types(item.id) for item in items}
    finally:
        store.close()

    if not items:
        console.print("[yellow]No assemblies indexed.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Types")
    table.add_column("XML docs")
    table.add_column("Indexed")
    for item in items:
        indexed = item.indexed_at.strftime("%Y-%m-%d %H:%M") if item.indexed_at else ""
        table.add_row(
            item.id, item.name, str(counts[item.id]), "yes" if item.has_documentation else "no", indexed
        )
    console.print(table)


def _types_table(types: List[TypeInfo]) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Kind")
    table.add_column("Full name")
    table.add_column("Id")
    for item in types:
        table.add_row(item.kind, escape(item.full_name), escape(item.id))
    return table


@app.command()
def types(
    module_id: str = typer.Argument(..., help="Catalog id of the assembly"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Substring filter"),
    page: int = typer.Option(1, help="Page number (1-based)"),
    page_size: int = typer.Option(AppConfig().page_size, help="Types per page"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List the types of an indexed assembly."""
    store = _open_existing(db)
    try:
        query = CatalogQuery(store)
        if query.get_module(module_id) is None:
            raise typer.BadParameter(f"Unknown assembly: {module_id}")
        try:
            result = query.page_types(module_id, search, page=page, page_size=page_size)
        except InvalidQuery as exc:
            raise typer.BadParameter(str(exc)) from exc
    finally:
        store.close()

    if not result.items:
        console.print("[yellow]No matching types.[/yellow]")
        return
    console.print(_types_table(result.items))
    console.print(f"Page {result.page} ({len(result.items)} of {result.total} types)")


@app.command()
def show(
    entity_id: str = typer.Argument(..., help="Documentation identifier, e.g. T:Ns.Type"),
    source: bool = typer.Option(False, "--source", help="Include decompiled source"),
    decompiler: Optional[Path] = typer.Option(
        None, "--decompiler", help="Path to ICSharpCode.Decompiler.dll"
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show an indexed type or member with its documentation."""
    _setup_logging(verbose)
    config = AppConfig(decompiler_assembly=decompiler)
    store = _open_existing(db)
    try:
        query = CatalogQuery(
            store, build_decompiler(config.decompiler_assembly, runtime=config.runtime)
        )
        details = query.member_details(entity_id, include_source=source)
        members = query.list_members(entity_id) if entity_id.startswith("T:") else []
    finally:
        store.close()

    if details is None:
        console.print(f"[red]Not found: {entity_id}[/red]")
        raise typer.Exit(code=1)

    documentation = details.documentation
    console.print(f"[bold]{escape(details.signature)}[/bold]")
    console.print(f"{details.kind} {escape(details.id)}")
    console.print(f"Documentation: {documentation.source}")
    if documentation.summary:
        console.print(documentation.summary, markup=False)
    if documentation.returns:
        console.print(f"Returns: {escape(documentation.returns)}")
    for name, text in documentation.parameters.items():
        console.print(f"  {name}: {escape(text)}")
    if documentation.example:
        console.print("Example:")
        console.print(documentation.example, markup=False)

    if members:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Kind")
        table.add_column("Signature")
        table.add_column("Id")
        for member in members:
            table.add_row(member.kind, escape(member.signature), escape(member.id))
        console.print(table)

    if details.source_code is not None:
        if details.source_code.available:
            console.print(details.source_code.content, markup=False)
        else:
            console.print("[yellow]Source code not available.[/yellow]")


@app.command()
def annotate(
    entity_id: str = typer.Argument(..., help="Documentation identifier"),
    summary: Optional[str] = typer.Option(None, help="Synthetic summary"),
    example: Optional[str] = typer.Option(None, help="Synthetic usage example"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Attach synthetic documentation to an indexed entity."""
    if summary is None and example is None:
        raise typer.BadParameter("Provide --summary and/or --example")
    store = _open_existing(db)
    try:
        stored = CatalogQuery(store).annotate(entity_id, summary=summary, example=example)
    finally:
        store.close()
    if not stored:
        console.print(f"[red]Not found: {entity_id}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Updated {entity_id}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    decompiler: Optional[Path] = typer.Option(
        None, "--decompiler", help="Path to ICSharpCode.Decompiler.dll"
    ),
    assembly_dir: Optional[Path] = typer.Option(
        None, "--assembly-dir", help="Where uploaded assemblies are kept"
    ),
    runtime: str = typer.Option(AppConfig().runtime, help="pythonnet runtime to load"),
) -> None:
    """Start the HTTP interface."""
    import uvicorn

    config = AppConfig(
        db_path=db if db is not None else AppConfig().db_path,
        runtime=runtime,
        decompiler_assembly=decompiler,
        assembly_dir=assembly_dir,
    )
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, it will be created on first upload.[/yellow]")
    configure_web(config)

    console.print(f"Starting web interface on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
