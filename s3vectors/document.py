# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Document loading and chunking for RAG ingestion.

Documents are split into overlapping windows of whitespace-separated
words.  Each chunk carries metadata describing its source document and a
short content preview, which is what search results display.
"""

import itertools
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)

#: File extensions picked up by ``process_directory``.
TEXT_EXTENSIONS = frozenset({".txt", ".md"})

#: Characters of chunk text kept in the ``content`` metadata field.
PREVIEW_CHARS = 500

_TITLE_RE = re.compile(r"^#\s+(.+)$")
_WHITESPACE_RE = re.compile(r"\s+")
_SPECIAL_RE = re.compile(r"[^\w\s.,!?\-'\"]")


@dataclass(frozen=True)
class ChunkingConfig:
    """Word-window chunking parameters.

    Attributes:
        chunk_size: Words per chunk.
        chunk_overlap: Words shared by consecutive chunks.
        min_chunk_size: Windows with fewer words are dropped.
    """

    chunk_size: int = 512
    chunk_overlap: int = 50
    min_chunk_size: int = 100

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive: {self.chunk_size}")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                "chunk_overlap must be in [0, chunk_size): "
                f"{self.chunk_overlap}"
            )
        if self.min_chunk_size < 0:
            raise ValueError(
                f"min_chunk_size must be >= 0: {self.min_chunk_size}"
            )


@dataclass(frozen=True)
class Document:
    id: str
    path: str
    content: str
    title: str
    file_type: str
    created_at: str

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


@dataclass(frozen=True)
class DocumentChunk:
    id: str
    document_id: str
    content: str
    chunk_index: int
    metadata: dict[str, Any] = field(default_factory=dict)


class DocumentProcessor:
    """Loads text files and splits them into chunks.

    Document ids (``doc-0``, ``doc-1``, ...) are assigned in load order and
    are unique per processor instance.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()
        self._counter = itertools.count()

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    def process_file(self, path: Path) -> Document:
        """Load one file.

        Raises:
            OSError: If the file cannot be read.
            UnicodeDecodeError: If the file is not UTF-8.
        """
        content = path.read_text(encoding="utf-8")
        return Document(
            id=f"doc-{next(self._counter)}",
            path=str(path),
            content=content,
            title=extract_title(content) or path.name,
            file_type=path.suffix.lstrip(".") or "txt",
            created_at=datetime.now(UTC).isoformat(),
        )

    def process_directory(self, directory: Path) -> list[Document]:
        """Load every ``.txt`` and ``.md`` file directly inside *directory*.

        Files are visited in name order.  A file that cannot be read is
        logged and skipped.
        """
        documents = []
        for path in sorted(directory.iterdir()):
            if not path.is_file():
                continue
            if path.suffix.lower() not in TEXT_EXTENSIONS:
                logger.debug("Skipping non-text file: %s", path)
                continue
            try:
                documents.append(self.process_file(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Error processing %s: %s", path, e)
                continue
            logger.debug("Processed document: %s", path)

        logger.info("Processed %d documents from %s", len(documents), directory)
        return documents

    def chunk_document(self, document: Document) -> list[DocumentChunk]:
        texts = self.split_text(document.content)
        total = len(texts)
        chunks = []
        for index, text in enumerate(texts):
            preview = text
            if len(text) > PREVIEW_CHARS:
                preview = text[:PREVIEW_CHARS] + "..."
            chunks.append(
                DocumentChunk(
                    id=f"{document.id}-chunk-{index}",
                    document_id=document.id,
                    content=text,
                    chunk_index=index,
                    metadata={
                        "document_id": document.id,
                        "document_path": document.path,
                        "title": document.title,
                        "file_type": document.file_type,
                        "chunk_index": index,
                        "total_chunks": total,
                        "created_at": document.created_at,
                        "content": preview,
                    },
                )
            )
        logger.info("Split document %s into %d chunks", document.id, total)
        return chunks

    def split_text(self, text: str) -> list[str]:
        """Split text into overlapping word windows.

        Text of at most ``chunk_size`` words is returned whole.  Otherwise
        windows start every ``chunk_size - chunk_overlap`` words; windows
        shorter than ``min_chunk_size`` are dropped, and splitting stops
        once fewer than ``min_chunk_size`` words remain past the next start.
        """
        cfg = self._config
        words = text.split()
        if len(words) <= cfg.chunk_size:
            return [text]

        step = cfg.chunk_size - cfg.chunk_overlap
        chunks = []
        start = 0
        while start < len(words):
            window = words[start : start + cfg.chunk_size]
            if len(window) >= cfg.min_chunk_size:
                chunks.append(" ".join(window))
            start += step
            if start + cfg.min_chunk_size > len(words):
                break
        return chunks


def extract_title(content: str) -> str | None:
    """First markdown ``# `` heading, else the first non-empty line."""
    lines = content.splitlines()
    for line in lines:
        match = _TITLE_RE.match(line)
        if match:
            return match.group(1).strip()
    for line in lines:
        if line.strip():
            return line.strip()
    return None


def clean_text(text: str) -> str:
    """Collapse whitespace and replace unusual characters with spaces."""
    cleaned = _WHITESPACE_RE.sub(" ", text)
    cleaned = _SPECIAL_RE.sub(" ", cleaned)
    return cleaned.strip()
