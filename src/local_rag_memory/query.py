from __future__ import annotations

from textwrap import shorten
from typing import List

from rich.console import Console
from rich.panel import Panel

from .models import RetrievalResult, ScoredFragment

console = Console()

_SEPARATOR = "\n\n---\n\n"

_EMPTY_MESSAGES = {
    "empty_index": "The index is empty. Add documents with 'ingest' or 'add' first.",
    "embedding_failed": "The query could not be embedded. Answer without grounding.",
    "no_match": "No fragment is similar enough to the query.",
}


def build_context(hits: List[ScoredFragment], max_chars: int) -> str:
    """
    Join retrieved fragments into a grounding block for a generation prompt.

    Fragments are taken best first until the next one would push the
    joined block, labels and separators included, past `max_chars`.
    """
    contexts: List[str] = []
    total_chars = 0
    for hit in hits:
        snippet = hit.fragment.text.strip()
        if not snippet:
            continue
        block = f"[{hit.fragment.source_name}]\n{snippet}"
        cost = len(block) + (len(_SEPARATOR) if contexts else 0)
        if total_chars + cost > max_chars:
            break
        contexts.append(block)
        total_chars += cost
    return _SEPARATOR.join(contexts)


def print_results(query: str, result: RetrievalResult) -> None:
    console.rule(f"[bold blue]Results for {query!r}[/bold blue]")
    if not result.grounded:
        console.print(f"[yellow]{_EMPTY_MESSAGES.get(result.status, 'No results.')}[/yellow]")
        return

    for hit in result.hits:
        preview = shorten(hit.fragment.text.replace("\n", " "), width=180, placeholder="...")
        console.print(
            Panel(
                preview,
                title=hit.fragment.source_name,
                subtitle=f"score={hit.score:.3f}",
                expand=False,
            )
        )


__all__ = ["build_context", "print_results"]
