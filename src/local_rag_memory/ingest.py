from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Optional

from pypdf import PdfReader
from rich.console import Console
from rich.progress import Progress

if TYPE_CHECKING:
    from .index import KnowledgeBase

console = Console()
logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".md", ".txt", ".pdf"}


def load_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def load_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    pages = []
    for i, page in enumerate(reader.pages):
        try:
            pages.append(page.extract_text() or "")
        except Exception as e:
            logger.warning("Could not extract page %d of %s: %s", i + 1, path, e)
            pages.append("")
    return "\n\n".join(pages)


def load_document(path: Path) -> str:
    if path.suffix.lower() == ".pdf":
        return load_pdf(path)
    return load_text(path)


def iter_files(data_dir: Path) -> Iterable[Path]:
    for path in sorted(data_dir.rglob("*")):
        if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES:
            yield path


async def ingest_file(kb: "KnowledgeBase", path: Path) -> Optional[str]:
    """Index one file under its file name. Returns the new document id, or None if already indexed."""
    content = load_document(path)
    if not content.strip():
        logger.info("Skipping empty file %s", path)
        return None
    return await kb.index_document(path.name, content)


async def ingest_directory(kb: "KnowledgeBase", data_dir: Path) -> Dict[str, Optional[str]]:
    if not data_dir.exists():
        console.print(f"[red]Data directory not found:[/red] {data_dir}")
        return {}

    files = list(iter_files(data_dir))
    if not files:
        console.print(f"[yellow]No .md, .txt or .pdf files found in {data_dir}[/yellow]")
        return {}

    results: Dict[str, Optional[str]] = {}

    console.print(f"[green]Loading documents from:[/green] {data_dir}")
    with Progress(console=console) as progress:
        task = progress.add_task("Reading & indexing documents...", total=len(files))
        for path in files:
            progress.update(task, description=f"Processing {path.name}")
            try:
                results[path.name] = await ingest_file(kb, path)
            except Exception as exc:
                console.print(f"[red]Failed to process {path}: {exc}[/red]")
            finally:
                progress.update(task, advance=1)

    added = sum(1 for doc_id in results.values() if doc_id is not None)
    console.print(f"[green]Indexed {added} new documents ({len(results) - added} unchanged).[/green]")
    return results


__all__ = ["ingest_directory", "ingest_file", "iter_files", "load_document"]
