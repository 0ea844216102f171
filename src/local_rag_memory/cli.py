from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import load_config
from .embeddings import StaticEmbeddingClient
from .index import KnowledgeBase, build_index, load_index, search
from .ingest import ingest_file
from .query import build_context, print_results

console = Console()


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to a config YAML file (default: config.yaml).",
    )


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def _print_documents(kb: KnowledgeBase) -> None:
    docs = kb.list_documents()
    if not docs:
        console.print("[yellow]No documents indexed.[/yellow]")
        return

    table = Table(title="Indexed documents")
    table.add_column("id")
    table.add_column("name")
    table.add_column("chunks", justify="right")
    table.add_column("created")
    for doc in docs:
        created = datetime.fromtimestamp(doc.created_at / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(doc.id, doc.name, str(doc.chunk_count), created)
    console.print(table)


def _offline_index(cfg) -> KnowledgeBase:
    # Listing and removal never embed, so skip loading a model.
    return load_index(cfg, embedder=StaticEmbeddingClient())


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Local RAG memory - index documents and retrieve grounding context."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Index every .md, .txt and .pdf file in the data directory.",
    )
    _add_config_arg(ingest_parser)

    add_parser = subparsers.add_parser("add", help="Index a single file.")
    add_parser.add_argument("path", type=str, help="File to index.")
    _add_config_arg(add_parser)

    search_parser = subparsers.add_parser(
        "search",
        help="Retrieve the fragments most relevant to a query.",
    )
    search_parser.add_argument("query", type=str, help="Query to search for.")
    search_parser.add_argument("--top-k", type=_positive_int, default=None, help="Maximum number of fragments.")
    search_parser.add_argument(
        "--context",
        action="store_true",
        help="Print the packed grounding context instead of result panels.",
    )
    _add_config_arg(search_parser)

    list_parser = subparsers.add_parser("list", help="List indexed documents.")
    _add_config_arg(list_parser)

    remove_parser = subparsers.add_parser("remove", help="Remove a document by id.")
    remove_parser.add_argument("doc_id", type=str, help="Document id (see 'list').")
    _add_config_arg(remove_parser)

    clear_parser = subparsers.add_parser("clear", help="Delete the whole index.")
    _add_config_arg(clear_parser)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    cfg = load_config(Path(args.config))

    if args.command == "ingest":
        console.print("[bold green]Building index...[/bold green]")
        build_index(cfg)
        console.print("[bold green]Index build complete.[/bold green]")
    elif args.command == "add":
        kb = load_index(cfg)

        async def _add() -> None:
            await kb.init()
            try:
                doc_id = await ingest_file(kb, Path(args.path))
            except Exception as exc:
                console.print(f"[red]Failed to process {args.path}: {exc}[/red]")
                return
            if doc_id is None:
                console.print(f"[yellow]{Path(args.path).name} is already indexed.[/yellow]")
            else:
                console.print(f"[green]Indexed as[/green] {doc_id}")

        asyncio.run(_add())
    elif args.command == "search":
        result = search(args.query, cfg, top_k=args.top_k)
        if args.context:
            console.print(build_context(result.hits, cfg.max_context_chars))
        else:
            print_results(args.query, result)
    elif args.command == "list":
        _print_documents(_offline_index(cfg))
    elif args.command == "remove":
        kb = _offline_index(cfg)
        if kb.store.find_document(args.doc_id) is None:
            console.print(f"[yellow]No document with id {args.doc_id}.[/yellow]")
        else:
            kb.remove_document(args.doc_id)
            console.print(f"[green]Removed[/green] {args.doc_id}")
    elif args.command == "clear":
        _offline_index(cfg).clear()
        console.print("[bold green]Index cleared.[/bold green]")
    else:  # pragma: no cover - defensive
        parser.print_help()


if __name__ == "__main__":
    main()
