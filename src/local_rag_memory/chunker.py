from __future__ import annotations

import re
from typing import List

DEFAULT_CHUNK_SIZE = 1000

# A sentence runs up to terminal punctuation followed by whitespace or the
# end of the text; trailing text without punctuation is its own unit.
# Every character lands in exactly one unit ("v1.5" does not split).
_SENTENCE_RE = re.compile(r".*?[.!?]+(?:\s+|\Z)|.+", re.DOTALL)


def split_sentences(text: str) -> List[str]:
    units = _SENTENCE_RE.findall(text)
    return units or [text]


def chunk_text(text: str, target_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """
    Split `text` into sentence-aligned segments of about `target_size` characters.

    Sentences are packed greedily; a buffer is flushed only when it is non-empty
    and the next sentence would push it past `target_size`. A single sentence
    longer than `target_size` becomes its own oversized segment.
    """
    segments: List[str] = []
    buffer = ""
    for sentence in split_sentences(text):
        if buffer and len(buffer) + len(sentence) > target_size:
            segments.append(buffer.strip())
            buffer = sentence
        else:
            buffer += sentence
    segments.append(buffer.strip())

    return [s for s in segments if s]


__all__ = ["DEFAULT_CHUNK_SIZE", "chunk_text", "split_sentences"]
