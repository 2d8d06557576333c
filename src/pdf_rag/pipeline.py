"""Ingestion and question-answering entry points.

``RagPipeline`` wires the segmenter, indexer, classifier, retriever, prompt
composer and chat model together. Every collaborator is injected at
construction; :func:`build_pipeline` creates the production wiring from
:class:`~pdf_rag.settings.Settings`.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO

from opentelemetry import trace

from .chunking import segment
from .classifier import QueryClassifier
from .embeddings import EmbeddingService, OpenAIEmbeddingService
from .errors import GenerationFailure, IngestionFailure, InvalidQueryError, PdfRagError, is_transient
from .indexing import index_chunks
from .io_utils import join_pages, load_pdf_pages
from .qa import ChatService, OpenAIChatModel, compose_prompt
from .registry import IndexRegistry
from .retrieval import Retriever
from .schema import Answer, Chunk, IngestResult
from .settings import ChunkingSettings, Settings
from .tracing import (
    ATTR_CHUNK_COUNT,
    ATTR_COLLECTION_NAME,
    ATTR_INPUT_VALUE,
    ATTR_OUTPUT_VALUE,
    ATTR_QUERY_COMPREHENSIVE,
    ATTR_RETRIEVAL_TOP_K,
    OUTPUT_PREVIEW_CHARS,
    get_tracer,
    traced_generation,
    traced_retrieval,
)
from .vector_store import VectorStore, build_vector_store

logger = logging.getLogger(__name__)


class RagPipeline:
    """Answers questions about the most recently ingested document."""

    def __init__(
        self,
        embedder: EmbeddingService,
        chat_model: ChatService,
        store: VectorStore,
        registry: IndexRegistry | None = None,
        chunking: ChunkingSettings | None = None,
        classifier: QueryClassifier | None = None,
        tracer: trace.Tracer | None = None,
    ) -> None:
        self.embedder = embedder
        self.chat_model = chat_model
        self.store = store
        self.registry = registry or IndexRegistry()
        self.chunking = chunking or ChunkingSettings()
        self.chunking.validate()
        self.classifier = classifier or QueryClassifier()
        self.tracer = tracer or get_tracer("pdf_rag.pipeline")
        self._retrieve = traced_retrieval(Retriever(embedder, store), self.tracer)
        self._complete = traced_generation(chat_model.complete, self.tracer, model_name=chat_model.model_name)

    def segment(self, document_text: str, page_starts: list[int] | None, source_filename: str = "") -> list[Chunk]:
        return segment(
            document_text,
            page_starts,
            chunk_size=self.chunking.chunk_size,
            chunk_overlap=self.chunking.chunk_overlap,
            source_filename=source_filename,
            separators=self.chunking.separators,
        )

    def ingest(self, document_text: str, page_starts: list[int] | None = None, source_filename: str = "") -> IngestResult:
        """Segment and index a document, replacing the active collection.

        Args:
            document_text: Full document text, pages concatenated.
            page_starts: Offset where each page begins (1-based page numbers).
            source_filename: Original name of the uploaded file.

        Returns:
            Chunk count and the name of the new active collection.

        Raises:
            IngestionFailure: If segmentation, embedding or indexing fails.
                The previously active collection stays active.
        """
        with self.tracer.start_as_current_span("ingest") as span:
            span.set_attribute(ATTR_INPUT_VALUE, source_filename)
            try:
                try:
                    chunks = self.segment(document_text, page_starts, source_filename)
                except ValueError as exc:
                    raise IngestionFailure(f"Invalid page boundaries: {exc}") from exc
                handle = index_chunks(chunks, self.embedder, self.store, self.registry, source_filename)
            except PdfRagError as exc:
                span.set_status(trace.StatusCode.ERROR, str(exc))
                span.record_exception(exc)
                logger.warning("Ingestion of %r failed: %s", source_filename, exc)
                raise
            span.set_attribute(ATTR_CHUNK_COUNT, handle.chunk_count)
            span.set_attribute(ATTR_COLLECTION_NAME, handle.name)
        return IngestResult(chunk_count=handle.chunk_count, collection_id=handle.name, filename=source_filename)

    def ingest_pdf(self, source: str | Path | BinaryIO, filename: str | None = None) -> IngestResult:
        """Extract a PDF's pages and ingest them."""
        if filename is None:
            filename = Path(source).name if isinstance(source, (str, Path)) else "document.pdf"
        pages = load_pdf_pages(source)
        document_text, page_starts = join_pages(pages)
        return self.ingest(document_text, page_starts, filename)

    def ask(self, query: str) -> Answer:
        """Answer a question from the active collection.

        Runs classify, retrieve, compose and complete in order. No step is
        retried and no partial answer is returned.

        Raises:
            InvalidQueryError: If the query is blank.
            NoActiveCollectionError: If nothing has been ingested yet.
            RetrievalFailure: If the embedding or store call fails.
            GenerationFailure: If the chat model call fails.
        """
        if query is None or not query.strip():
            raise InvalidQueryError()

        with self.tracer.start_as_current_span("rag-pipeline") as span:
            span.set_attribute(ATTR_INPUT_VALUE, query)
            try:
                handle = self.registry.active()
                classification = self.classifier(query)
                span.set_attribute(ATTR_QUERY_COMPREHENSIVE, classification.comprehensive)
                span.set_attribute(ATTR_RETRIEVAL_TOP_K, classification.k)

                results = self._retrieve(query, classification.k, handle)
                prompt = compose_prompt(query, results, comprehensive=classification.comprehensive)
                try:
                    text = self._complete(prompt)
                except Exception as exc:
                    raise GenerationFailure(f"Chat model call failed: {exc}", transient=is_transient(exc)) from exc
            except PdfRagError as exc:
                span.set_status(trace.StatusCode.ERROR, str(exc))
                span.record_exception(exc)
                raise
            span.set_attribute(ATTR_OUTPUT_VALUE, text[:OUTPUT_PREVIEW_CHARS])

        logger.info(
            "Answered from %s with %d chunks (comprehensive=%s)",
            handle.name,
            len(results),
            classification.comprehensive,
        )
        return Answer(text=text, chunks_used=len(results), comprehensive=classification.comprehensive)


def build_pipeline(settings: Settings, registry: IndexRegistry | None = None) -> RagPipeline:
    """Create the production pipeline: OpenAI models and the configured store.

    Raises:
        ConfigurationError: If ``OPENAI_API_KEY`` is missing.
    """
    return RagPipeline(
        embedder=OpenAIEmbeddingService.from_settings(settings.openai),
        chat_model=OpenAIChatModel.from_settings(settings.openai),
        store=build_vector_store(settings.store.backend, settings.store.persist_dir),
        registry=registry or IndexRegistry(settings.store.collection_prefix),
        chunking=settings.chunking,
        classifier=QueryClassifier.from_settings(settings.retrieval),
    )
