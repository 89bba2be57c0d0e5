"""Recursive character text splitting with optional document header metadata."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_SEPARATORS = ("\n\n", "\n", " ", "")
_HEADER_SOURCE_PREFIXES = ("link://", "youtube://")


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _pluck_chunk_source(metadata: dict[str, Any]) -> str | None:
    chunk_source = metadata.get("chunkSource")
    if not isinstance(chunk_source, str) or not chunk_source:
        return None
    if not chunk_source.startswith(_HEADER_SOURCE_PREFIXES):
        return None
    return chunk_source.split("://", 1)[1]


# metadata key -> (header label, extractor)
_HEADER_PLUCK_MAP = {
    "title": ("sourceDocument", lambda metadata: metadata.get("title")),
    "published": ("published", lambda metadata: metadata.get("published")),
    "chunkSource": ("source", _pluck_chunk_source),
}


class TextSplitter:
    """Splits text into overlapping chunks no longer than ``chunk_size``.

    Splitting tries paragraph breaks first, then line breaks, then spaces,
    and finally individual characters. When ``chunk_header_meta`` is given,
    every chunk is prefixed with a ``<document_metadata>`` block.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = 20,
        chunk_header_meta: dict[str, Any] | None = None,
        separators: tuple[str, ...] = DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must be non-negative")
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.chunk_header_meta = chunk_header_meta
        self._separators = separators

    @staticmethod
    def determine_max_chunk_size(
        preferred: Any = None,
        embedder_limit: Any = None,
    ) -> int:
        """Pick the chunk size, never exceeding what the embedder accepts."""
        limit = _coerce_int(embedder_limit) or DEFAULT_CHUNK_SIZE
        preferred_size = _coerce_int(preferred)
        if preferred_size is None or preferred_size <= 0:
            return limit
        if preferred_size > limit:
            logger.info(
                "Chunk size %d exceeds embedder limit %d; using the limit.",
                preferred_size,
                limit,
            )
            return limit
        return preferred_size

    @staticmethod
    def build_header_meta(metadata: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """Select the document metadata that is repeated in every chunk header."""
        if not metadata:
            return None

        plucked: dict[str, Any] = {}
        for key, (label, pluck) in _HEADER_PLUCK_MAP.items():
            if key not in metadata:
                continue
            value = pluck(metadata)
            if value:
                plucked[label] = value
        return plucked

    def stringify_header(self) -> str | None:
        if not self.chunk_header_meta:
            return None

        lines = [
            f"{key}: {value}\n"
            for key, value in self.chunk_header_meta.items()
            if key and value
        ]
        if not lines:
            return None
        return f"<document_metadata>\n{''.join(lines)}</document_metadata>\n\n"

    def split_text(self, text: str) -> list[str]:
        """Split ``text`` into ordered chunks."""
        if not text:
            return []

        chunks = self._split(text, self._separators)
        header = self.stringify_header()
        if header:
            chunks = [f"{header}{chunk}" for chunk in chunks]
        return chunks

    def _split(self, text: str, separators: tuple[str, ...]) -> list[str]:
        separator = separators[-1]
        remaining: tuple[str, ...] = ()
        for index, candidate in enumerate(separators):
            if candidate == "" or candidate in text:
                separator = candidate
                remaining = separators[index + 1 :]
                break

        splits = text.split(separator) if separator else list(text)
        chunks: list[str] = []
        pending: list[str] = []
        for piece in splits:
            if len(piece) < self.chunk_size:
                pending.append(piece)
                continue
            if pending:
                chunks.extend(self._merge(pending, separator))
                pending = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)
        if pending:
            chunks.extend(self._merge(pending, separator))
        return chunks

    def _merge(self, pieces: list[str], separator: str) -> list[str]:
        sep_len = len(separator)
        chunks: list[str] = []
        current: list[str] = []
        total = 0

        for piece in pieces:
            joined_len = total + len(piece) + (sep_len if current else 0)
            if joined_len > self.chunk_size and current:
                chunk = separator.join(current).strip()
                if chunk:
                    chunks.append(chunk)
                # Drop leading pieces until only the overlap window remains.
                while total > self.chunk_overlap or (
                    total > 0
                    and total + len(piece) + (sep_len if current else 0) > self.chunk_size
                ):
                    total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                    current.pop(0)
            current.append(piece)
            total += len(piece) + (sep_len if len(current) > 1 else 0)

        chunk = separator.join(current).strip()
        if chunk:
            chunks.append(chunk)
        return chunks
