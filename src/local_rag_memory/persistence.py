from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .models import IndexSnapshot

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "rag_index_v2"
# Snapshots at or above this many characters are not written.
DEFAULT_MAX_SNAPSHOT_CHARS = 4_500_000


class SnapshotStore:
    """
    Durable single-slot storage for the full index.

    The slot is `<directory>/<key>.json`. Each save rewrites the whole
    snapshot; a snapshot too large to write leaves the previous file in place.
    """

    def __init__(
        self,
        directory: Path,
        key: str = DEFAULT_SNAPSHOT_KEY,
        max_chars: int = DEFAULT_MAX_SNAPSHOT_CHARS,
    ) -> None:
        self.directory = Path(directory)
        self.key = key
        self.max_chars = max_chars

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def save(self, snapshot: IndexSnapshot) -> bool:
        """Write the snapshot. Returns False when it was skipped or failed."""
        serialized = snapshot.model_dump_json()
        if len(serialized) >= self.max_chars:
            logger.warning(
                "Index snapshot too large to persist (%d chars, limit %d); "
                "keeping it in memory only.",
                len(serialized),
                self.max_chars,
            )
            return False

        tmp_path = self.path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(serialized, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError:
            logger.exception("Failed to save index snapshot to %s", self.path)
            return False

        logger.debug(
            "Saved index snapshot: %d docs, %d fragments.",
            len(snapshot.documents),
            len(snapshot.fragments),
        )
        return True

    def load(self) -> IndexSnapshot:
        """Read the slot. A missing or unreadable slot yields an empty snapshot."""
        if not self.path.exists():
            return IndexSnapshot()

        try:
            snapshot = IndexSnapshot.model_validate_json(self.path.read_bytes())
        except (OSError, ValidationError):
            logger.exception("Failed to load index snapshot from %s; starting empty.", self.path)
            return IndexSnapshot()

        problem = _inconsistency(snapshot)
        if problem is not None:
            logger.error("Malformed index snapshot in %s (%s); starting empty.", self.path, problem)
            return IndexSnapshot()

        logger.info(
            "Index hydrated: %d docs, %d fragments.",
            len(snapshot.documents),
            len(snapshot.fragments),
        )
        return snapshot

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


def _inconsistency(snapshot: IndexSnapshot) -> Optional[str]:
    """Describe why a snapshot breaks the index invariants, or None if it is sound."""
    dims = {len(f.embedding) for f in snapshot.fragments}
    if 0 in dims or len(dims) > 1:
        return f"embedding dimensions {sorted(dims)}"

    names = [d.name for d in snapshot.documents]
    if len(set(names)) != len(names):
        return "duplicate document names"

    orphans = {f.source_name for f in snapshot.fragments} - set(names)
    if orphans:
        return f"fragments without a document: {sorted(orphans)[:3]}"
    return None


__all__ = ["DEFAULT_MAX_SNAPSHOT_CHARS", "DEFAULT_SNAPSHOT_KEY", "SnapshotStore"]
