"""Command-line interface for managing namespaces, documents, and searches."""

from __future__ import annotations

import argparse
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any

import anyio
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from rag_vectordb.config import Settings
from rag_vectordb.errors import VectorDBError
from rag_vectordb.ingestion import DocumentData
from rag_vectordb.provider import VectorDatabase

console = Console()

Handler = Callable[[argparse.Namespace, VectorDatabase], Awaitable[int]]


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Namespace-scoped vector storage and retrieval."
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON to stdout.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser("ingest", help="Vectorize a document.")
    ingest_parser.add_argument("--namespace", required=True, help="Target namespace.")
    ingest_parser.add_argument(
        "--file",
        type=Path,
        required=True,
        help="Text file, or JSON document with pageContent/docId keys.",
    )
    ingest_parser.add_argument(
        "--doc-id",
        type=str,
        default=None,
        help="Document id for plain text files (default: derived from the path).",
    )
    ingest_parser.add_argument("--title", type=str, default=None, help="Document title.")
    ingest_parser.add_argument(
        "--skip-cache",
        action="store_true",
        help="Re-embed even when cached vectors exist.",
    )
    ingest_parser.set_defaults(handler=_cmd_ingest)

    search_parser = subparsers.add_parser("search", help="Similarity search a namespace.")
    search_parser.add_argument("--namespace", required=True, help="Namespace to search.")
    search_parser.add_argument("--query", required=True, help="Query text.")
    search_parser.add_argument(
        "--threshold",
        type=float,
        default=0.25,
        help="Minimum similarity score (0-1).",
    )
    search_parser.add_argument(
        "--top-n",
        type=int,
        default=4,
        help="Number of nearest vectors to fetch.",
    )
    search_parser.add_argument(
        "--filter",
        action="append",
        default=[],
        dest="filters",
        help="Source identifier to exclude (repeatable).",
    )
    search_parser.set_defaults(handler=_cmd_search)

    stats_parser = subparsers.add_parser("stats", help="Show namespace statistics.")
    stats_parser.add_argument("--namespace", required=True)
    stats_parser.set_defaults(handler=_cmd_stats)

    count_parser = subparsers.add_parser("count", help="Count vectors in a namespace.")
    count_parser.add_argument("--namespace", required=True)
    count_parser.set_defaults(handler=_cmd_count)

    list_parser = subparsers.add_parser("namespaces", help="List all namespaces.")
    list_parser.set_defaults(handler=_cmd_namespaces)

    delete_doc_parser = subparsers.add_parser(
        "delete-document", help="Remove a document's vectors."
    )
    delete_doc_parser.add_argument("--namespace", required=True)
    delete_doc_parser.add_argument("--doc-id", required=True)
    delete_doc_parser.set_defaults(handler=_cmd_delete_document)

    delete_ns_parser = subparsers.add_parser(
        "delete-namespace", help="Drop a namespace and its vectors."
    )
    delete_ns_parser.add_argument("--namespace", required=True)
    delete_ns_parser.set_defaults(handler=_cmd_delete_namespace)

    reset_parser = subparsers.add_parser("reset", help="Wipe all vector storage.")
    reset_parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the irreversible reset.",
    )
    reset_parser.set_defaults(handler=_cmd_reset)

    heartbeat_parser = subparsers.add_parser("heartbeat", help="Check the backend.")
    heartbeat_parser.set_defaults(handler=_cmd_heartbeat)

    return parser.parse_args(argv)


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        console.print("[red]Configuration error:[/red]")
        for error in exc.errors():
            field = error.get("loc", ("unknown",))[0]
            msg = error.get("msg", "Invalid value")
            console.print(f"  [yellow]{field}[/yellow]: {msg}")
        raise


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _emit(args: argparse.Namespace, payload: dict[str, Any], text: str) -> None:
    if args.json:
        print(json.dumps(payload))
    else:
        console.print(text)


def _load_document(args: argparse.Namespace) -> DocumentData:
    path: Path = args.file
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return DocumentData.from_dict(json.loads(raw))

    resolved = str(path.resolve())
    return DocumentData(
        page_content=raw,
        doc_id=args.doc_id or str(uuid.uuid5(uuid.NAMESPACE_URL, resolved)),
        metadata={"title": args.title or path.name, "source": resolved},
    )


async def _cmd_ingest(args: argparse.Namespace, db: VectorDatabase) -> int:
    document = _load_document(args)
    result = await db.ingest(
        args.namespace,
        document,
        source_file_path=str(args.file.resolve()),
        skip_cache=args.skip_cache,
    )
    payload = {"doc_id": document.doc_id, **asdict(result)}
    if result.vectorized:
        _emit(args, payload, f"[green]Vectorized[/green] {document.doc_id}")
        return 0
    _emit(args, payload, f"[red]Not vectorized:[/red] {result.error or 'empty document'}")
    return 1


async def _cmd_search(args: argparse.Namespace, db: VectorDatabase) -> int:
    result = await db.search(
        args.namespace,
        args.query,
        similarity_threshold=args.threshold,
        top_n=args.top_n,
        filter_identifiers=args.filters,
    )
    if args.json:
        print(json.dumps(asdict(result)))
        return 0
    if result.message:
        console.print(f"[yellow]{result.message}[/yellow]")
        return 0
    for index, source in enumerate(result.sources, start=1):
        score = source.get("score")
        title = source.get("title", "untitled")
        console.print(f"[bold]{index}.[/bold] {title} [dim](score={score:.3f})[/dim]")
        console.print(source.get("text", ""))
    return 0


async def _cmd_stats(args: argparse.Namespace, db: VectorDatabase) -> int:
    stats = await db.namespace_stats(args.namespace)
    _emit(
        args,
        asdict(stats),
        f"{stats.name}: {stats.vector_count} vectors (size={stats.vector_size})",
    )
    return 0


async def _cmd_count(args: argparse.Namespace, db: VectorDatabase) -> int:
    count = await db.namespace_count(args.namespace)
    _emit(args, {"namespace": args.namespace, "count": count}, str(count))
    return 0


async def _cmd_namespaces(args: argparse.Namespace, db: VectorDatabase) -> int:
    names = await db.namespaces()
    _emit(args, {"namespaces": names}, "\n".join(names) or "[dim]No namespaces.[/dim]")
    return 0


async def _cmd_delete_document(args: argparse.Namespace, db: VectorDatabase) -> int:
    deleted = await db.delete_document(args.namespace, args.doc_id)
    _emit(
        args,
        {"deleted": deleted},
        "Deleted." if deleted else "[dim]Nothing to delete.[/dim]",
    )
    return 0


async def _cmd_delete_namespace(args: argparse.Namespace, db: VectorDatabase) -> int:
    message = await db.delete_namespace(args.namespace)
    _emit(args, {"message": message}, message)
    return 0


async def _cmd_reset(args: argparse.Namespace, db: VectorDatabase) -> int:
    if not args.yes:
        console.print("[red]Refusing to reset without --yes.[/red]")
        return 1
    _emit(args, await db.reset(), "[green]Vector storage reset.[/green]")
    return 0


async def _cmd_heartbeat(args: argparse.Namespace, db: VectorDatabase) -> int:
    beat = await db.heartbeat()
    _emit(args, beat, f"alive ({beat['heartbeat']})")
    return 0


async def _run(args: argparse.Namespace) -> int:
    try:
        settings = _load_settings()
    except ValidationError:
        return 1
    _configure_logging(settings.log_level)

    handler: Handler = args.handler
    try:
        async with VectorDatabase(settings) as db:
            return await handler(args, db)
    except VectorDBError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return 1


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    return anyio.run(_run, args)


if __name__ == "__main__":
    raise SystemExit(main())
