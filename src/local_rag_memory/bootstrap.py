from __future__ import annotations

import datetime as dt
import logging
from importlib import resources
from string import Template
from typing import TYPE_CHECKING, Optional

from .config import AppConfig

if TYPE_CHECKING:
    from .index import KnowledgeBase

logger = logging.getLogger(__name__)

SYSTEM_DOCUMENT_NAME = "SYSTEM_CORE_MEMORY"


def load_system_knowledge(cfg: Optional[AppConfig] = None, today: Optional[dt.date] = None) -> str:
    """
    Read the built-in knowledge text.

    Uses `cfg.system_knowledge_path` when set, otherwise the packaged default.
    `$current_date` in the text is replaced with today's date.
    """
    if cfg is not None and cfg.system_knowledge_path is not None:
        raw = cfg.system_knowledge_path.read_text(encoding="utf-8")
    else:
        raw = resources.files("local_rag_memory").joinpath(
            "resources/system_knowledge.md"
        ).read_text(encoding="utf-8")

    today = today or dt.date.today()
    return Template(raw).safe_substitute(current_date=today.isoformat())


async def ensure_system_knowledge(kb: "KnowledgeBase", knowledge_text: str) -> None:
    """Index the system knowledge document once per store lifetime. Never raises."""
    if kb.store.initialized:
        return

    if kb.store.find_document_by_name(SYSTEM_DOCUMENT_NAME) is None:
        try:
            logger.info("Indexing system core memory...")
            await kb.indexer.index(SYSTEM_DOCUMENT_NAME, knowledge_text)
            logger.info("System core memory online.")
        except Exception:
            logger.exception("System core memory failed to load.")
    else:
        logger.info("System core memory loaded from snapshot.")

    kb.store.initialized = True


__all__ = ["SYSTEM_DOCUMENT_NAME", "ensure_system_knowledge", "load_system_knowledge"]
