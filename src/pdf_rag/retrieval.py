from __future__ import annotations

import logging

from .embeddings import EmbeddingService
from .errors import NoActiveCollectionError, RetrievalFailure, is_transient
from .schema import CollectionHandle, RetrievalResult
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


def retrieve(
    query: str,
    top_k: int,
    handle: CollectionHandle | None,
    embedder: EmbeddingService,
    store: VectorStore,
) -> list[RetrievalResult]:
    """Embed the query and return the nearest chunks of one collection.

    Args:
        query: User question.
        top_k: Maximum number of chunks to return.
        handle: Collection to search, resolved once by the caller; ``None``
            when nothing has been ingested.
        embedder: The embedding service that indexed ``handle``.
        store: Vector store holding ``handle``.

    Returns:
        At most ``top_k`` results ordered by descending similarity; fewer
        when the collection holds fewer chunks.

    Raises:
        NoActiveCollectionError: If ``handle`` is ``None``.
        ValueError: If ``top_k`` is not positive.
        RetrievalFailure: If the embedding or store call fails.
    """
    if handle is None:
        raise NoActiveCollectionError()
    if top_k <= 0:
        raise ValueError(f"top_k must be positive, got {top_k}")

    try:
        query_embedding = embedder.embed(query)
        results = store.query(handle, query_embedding, top_k)
    except Exception as exc:
        raise RetrievalFailure(f"Retrieval from {handle.name} failed: {exc}", transient=is_transient(exc)) from exc

    results = sorted(results, key=lambda result: result.score, reverse=True)[:top_k]
    logger.debug("Retrieved %d/%d chunks from %s", len(results), top_k, handle.name)
    return results


class Retriever:
    """Retriever bound to one embedding service and store."""

    def __init__(self, embedder: EmbeddingService, store: VectorStore) -> None:
        self.embedder = embedder
        self.store = store

    def __call__(self, query: str, top_k: int, handle: CollectionHandle | None) -> list[RetrievalResult]:
        return retrieve(query, top_k, handle, self.embedder, self.store)
