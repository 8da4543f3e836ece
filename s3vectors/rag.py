# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Retrieval-augmented generation on top of S3 Vectors.

``RagPipeline`` ties together a ``DocumentProcessor`` (chunking), an
``EmbeddingProvider`` (text to vectors) and an ``S3VectorsClient``
(storage and similarity search):

* ``initialize()`` creates the bucket and index, reusing existing ones;
* ``ingest_documents(path)`` chunks, embeds and uploads every text file;
* ``search(query)`` embeds the query and returns the closest chunks.

The embedder is an explicit, owned handle.  ``SentenceTransformerEmbedder``
is the default implementation and needs the ``rag`` extra.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from s3vectors.client import (
    S3VectorsClient,
    batch_put_vectors,
    create_bucket_and_index,
)
from s3vectors.document import Document, DocumentChunk, DocumentProcessor
from s3vectors.errors import S3VectorsError
from s3vectors.types import DistanceMetric, Vector


if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_DIMENSION = 384

NO_RESULTS_MESSAGE = "No relevant documents found for your query."


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can turn text into fixed-size vectors."""

    @property
    def dimension(self) -> int: ...

    async def load(self) -> None: ...

    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


class SentenceTransformerEmbedder:
    """Local embeddings with a sentence-transformers model.

    The model is loaded on first use and encoding runs in a worker thread
    so the event loop is not blocked.  Embeddings are L2-normalized, which
    makes cosine distance meaningful.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        dimension: int = DEFAULT_DIMENSION,
        device: str | None = None,
    ) -> None:
        self.model_name = model_name
        self._dimension = dimension
        self._device = device
        self._model: SentenceTransformer | None = None

    @property
    def dimension(self) -> int:
        return self._dimension

    def _load_model(self) -> SentenceTransformer:
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise S3VectorsError(
                    "sentence-transformers is not installed; "
                    "install with: pip install 's3vectors-cli[rag]'"
                ) from e
            logger.info("Loading embedding model %s", self.model_name)
            self._model = SentenceTransformer(
                self.model_name, device=self._device
            )
            reported = self._model.get_sentence_embedding_dimension()
            if reported:
                self._dimension = int(reported)
        return self._model

    async def load(self) -> None:
        """Load the model so ``dimension`` reports its real size."""
        await asyncio.to_thread(self._load_model)

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        embeddings = model.encode(
            texts, normalize_embeddings=True, show_progress_bar=False
        )
        return [[float(x) for x in row] for row in embeddings]

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._encode, texts)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RagConfig:
    """RAG pipeline settings.

    Attributes:
        bucket_name: Vector bucket holding the document index.
        index_name: Index holding chunk embeddings.
        embedding_batch_size: Chunks embedded per embedder call.
        vector_upload_batch_size: Vectors per ``batch_put_vectors`` call.
        max_concurrent_embeddings: Embedder calls in flight at once.
    """

    bucket_name: str = "rag-vectors-default"
    index_name: str = "documents-default"
    embedding_batch_size: int = 32
    vector_upload_batch_size: int = 100
    max_concurrent_embeddings: int = 4

    def __post_init__(self) -> None:
        for name in (
            "embedding_batch_size",
            "vector_upload_batch_size",
            "max_concurrent_embeddings",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


@dataclass(frozen=True)
class RagSearchResult:
    chunk_id: str
    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IngestReport:
    """Outcome of one ingestion run.

    Attributes:
        documents: Documents loaded.
        chunks: Chunks produced.
        uploaded: Vectors stored.
        errors: One message per failed document or upload batch.
        elapsed_seconds: Wall-clock duration.
    """

    documents: int = 0
    chunks: int = 0
    uploaded: int = 0
    errors: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


class RagPipeline:
    def __init__(
        self,
        client: S3VectorsClient,
        embedder: EmbeddingProvider,
        config: RagConfig | None = None,
        processor: DocumentProcessor | None = None,
    ) -> None:
        self._client = client
        self._embedder = embedder
        self._config = config or RagConfig()
        self._processor = processor or DocumentProcessor()

    @property
    def config(self) -> RagConfig:
        return self._config

    async def initialize(self) -> None:
        """Create the bucket and index (cosine, embedder dimension)."""
        await self._embedder.load()
        logger.info(
            "Initializing RAG pipeline with bucket %s and index %s",
            self._config.bucket_name,
            self._config.index_name,
        )
        await create_bucket_and_index(
            self._client,
            self._config.bucket_name,
            self._config.index_name,
            self._embedder.dimension,
            DistanceMetric.COSINE,
        )

    async def ingest_documents(self, path: Path) -> IngestReport:
        """Chunk, embed and upload every text file under *path*.

        *path* may be a directory (``.txt``/``.md`` files inside it) or a
        single file.  A failing document or upload batch is recorded in
        the report and does not stop the run.
        """
        start = time.monotonic()
        report = IngestReport()
        logger.info("Starting document ingestion from %s", path)

        if path.is_dir():
            documents = await asyncio.to_thread(
                self._processor.process_directory, path
            )
        else:
            try:
                documents = [self._processor.process_file(path)]
            except (OSError, UnicodeDecodeError) as e:
                raise S3VectorsError(f"Cannot read {path}: {e}") from e

        report.documents = len(documents)
        if not documents:
            logger.warning("No documents found in %s", path)
            report.elapsed_seconds = time.monotonic() - start
            return report

        semaphore = asyncio.Semaphore(self._config.max_concurrent_embeddings)
        results = await asyncio.gather(
            *(self._embed_document(doc, semaphore) for doc in documents),
            return_exceptions=True,
        )

        vectors: list[Vector] = []
        for document, result in zip(documents, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "Error processing document %s: %s", document.id, result
                )
                report.errors.append(f"{document.path}: {result}")
                continue
            report.chunks += len(result)
            vectors.extend(result)

        batch = self._config.vector_upload_batch_size
        for i in range(0, len(vectors), batch):
            chunk = vectors[i : i + batch]
            try:
                report.uploaded += await batch_put_vectors(
                    self._client,
                    self._config.bucket_name,
                    self._config.index_name,
                    chunk,
                    self._embedder.dimension,
                )
            except S3VectorsError as e:
                logger.error("Error uploading vectors: %s", e)
                report.errors.append(f"upload batch {i // batch}: {e}")

        report.elapsed_seconds = time.monotonic() - start
        logger.info(
            "Document ingestion completed in %.1fs: %d of %d vectors uploaded",
            report.elapsed_seconds,
            report.uploaded,
            report.chunks,
        )
        return report

    async def _embed_document(
        self, document: Document, semaphore: asyncio.Semaphore
    ) -> list[Vector]:
        chunks = self._processor.chunk_document(document)
        vectors = []
        size = self._config.embedding_batch_size
        for i in range(0, len(chunks), size):
            batch: list[DocumentChunk] = chunks[i : i + size]
            async with semaphore:
                embeddings = await self._embedder.embed_batch(
                    [c.content for c in batch]
                )
            vectors.extend(
                Vector(key=c.id, data=e, metadata=c.metadata)
                for c, e in zip(batch, embeddings, strict=True)
            )
        logger.debug(
            "Embedded %d chunks from document %s", len(vectors), document.id
        )
        return vectors

    async def search(
        self,
        query: str,
        top_k: int = 5,
        filter: dict[str, Any] | None = None,
    ) -> list[RagSearchResult]:
        """Return the chunks closest to *query*.

        ``score`` is ``1 - distance`` (0.0 when no distance is returned).
        """
        logger.info("Searching for: %s", query)
        embedding = await self._embedder.embed(query)
        matches = await self._client.query_vectors(
            self._config.bucket_name,
            self._config.index_name,
            embedding,
            top_k,
            filter=filter,
            return_metadata=True,
            return_distance=True,
        )
        results = []
        for match in matches:
            metadata = match.metadata or {}
            content = metadata.get("content")
            results.append(
                RagSearchResult(
                    chunk_id=match.key,
                    content=content if isinstance(content, str) else "",
                    score=(
                        1.0 - match.distance
                        if match.distance is not None
                        else 0.0
                    ),
                    metadata=metadata,
                )
            )
        logger.info("Found %d relevant documents", len(results))
        return results

    def generate_response(
        self, query: str, results: list[RagSearchResult]
    ) -> str:
        """Format retrieved chunks as a context summary for *query*."""
        context = "\n".join(
            f"[Document {i}]\n{r.content}\n" for i, r in enumerate(results, 1)
        )
        return (
            "Based on the retrieved context, here's a response to your query:"
            f"\n\nQuery: {query}\n\nContext Summary:\n{context}"
        )


async def rag_query(pipeline: RagPipeline, query: str, top_k: int = 5) -> str:
    results = await pipeline.search(query, top_k)
    if not results:
        return NO_RESULTS_MESSAGE
    return pipeline.generate_response(query, results)
