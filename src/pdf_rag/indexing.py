from __future__ import annotations

import logging

from .embeddings import EmbeddingService
from .errors import IngestionFailure, is_transient
from .registry import IndexRegistry
from .schema import Chunk, CollectionHandle
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


def index_chunks(
    chunks: list[Chunk],
    embedder: EmbeddingService,
    store: VectorStore,
    registry: IndexRegistry,
    source_filename: str = "",
) -> CollectionHandle:
    """Embed chunks into a fresh collection and make it the active one.

    The registry swap happens only after every vector is written, so a
    failure at any step leaves the previously active collection in place.
    Superseded collections are not deleted here.

    Args:
        chunks: Segmented chunks of one document.
        embedder: Embedding service; must be the one queries will use.
        store: Vector store receiving the new collection.
        registry: Slot whose active handle is replaced on success.
        source_filename: Uploaded file name recorded on the handle.

    Returns:
        Handle of the newly active collection.

    Raises:
        IngestionFailure: If there are no chunks, or embedding or writing fails.
    """
    if not chunks:
        raise IngestionFailure("The document does not contain any extractable text.")

    try:
        embeddings = embedder.embed_many([chunk.text for chunk in chunks])
    except Exception as exc:
        raise IngestionFailure(f"Embedding failed: {exc}", transient=is_transient(exc)) from exc
    if len(embeddings) != len(chunks):
        raise IngestionFailure(f"Embedding count mismatch: chunks={len(chunks)} embeddings={len(embeddings)}")

    name = registry.new_collection_name()
    try:
        store.create_collection(name)
        written = store.upsert(CollectionHandle(name=name, chunk_count=0), chunks, embeddings)
    except Exception as exc:
        raise IngestionFailure(f"Indexing into {name} failed: {exc}", transient=is_transient(exc)) from exc

    handle = CollectionHandle(name=name, chunk_count=written, source_filename=source_filename)
    registry.swap(handle)
    logger.info("Indexed %d chunks from %r into %s", written, source_filename, name)
    return handle
