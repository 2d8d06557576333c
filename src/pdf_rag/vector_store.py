from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Protocol

import chromadb
import numpy as np
from chromadb.errors import ChromaError

from .embeddings import cosine_similarity
from .schema import Chunk, CollectionHandle, RetrievalResult

logger = logging.getLogger(__name__)

CHROMA_BATCH_SIZE = 1000


class VectorStore(Protocol):
    """Collection-oriented nearest-neighbour store."""

    def create_collection(self, name: str) -> CollectionHandle: ...

    def upsert(self, handle: CollectionHandle, chunks: list[Chunk], embeddings: list[list[float]]) -> int: ...

    def query(self, handle: CollectionHandle, query_embedding: list[float], top_k: int) -> list[RetrievalResult]: ...

    def count(self, handle: CollectionHandle) -> int: ...


class CollectionExistsError(Exception):
    """Raised when a collection name is already taken; never overwritten."""


def chunk_metadata(chunk: Chunk) -> dict:
    """Flatten chunk attributes into scalar metadata values."""
    return {
        "chunk_id": chunk.chunk_id,
        "page_number": chunk.page_number,
        "page_numbers": ",".join(str(page) for page in chunk.pages),
        "source_filename": chunk.source_filename,
        "start_index": chunk.start_index,
    }


def chunk_from_metadata(text: str, metadata: dict) -> Chunk:
    pages = tuple(int(page) for page in str(metadata.get("page_numbers", "")).split(",") if page)
    return Chunk(
        chunk_id=str(metadata["chunk_id"]),
        text=text,
        page_number=int(metadata["page_number"]),
        source_filename=str(metadata.get("source_filename", "")),
        start_index=int(metadata.get("start_index", 0)),
        page_numbers=pages,
    )


class ChromaVectorStore:
    """Chroma-backed store; one Chroma collection per ingestion, cosine space."""

    def __init__(self, client=None, persist_dir: str = "artifacts/chroma") -> None:
        if client is None:
            Path(persist_dir).mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(path=persist_dir)
        self.client = client

    def create_collection(self, name: str) -> CollectionHandle:
        """Create an empty collection, refusing to reuse an existing name.

        Raises:
            CollectionExistsError: If ``name`` already exists in the store.
        """
        try:
            self.client.create_collection(name=name, metadata={"hnsw:space": "cosine"})
        except (ChromaError, ValueError) as exc:
            # Older releases raise ValueError, newer ones UniqueConstraintError.
            if "already exists" not in str(exc):
                raise
            raise CollectionExistsError(f"collection {name!r} already exists") from exc
        return CollectionHandle(name=name, chunk_count=0)

    def upsert(self, handle: CollectionHandle, chunks: list[Chunk], embeddings: list[list[float]]) -> int:
        collection = self.client.get_collection(handle.name)
        for offset in range(0, len(chunks), CHROMA_BATCH_SIZE):
            batch = chunks[offset : offset + CHROMA_BATCH_SIZE]
            collection.upsert(
                ids=[chunk.chunk_id for chunk in batch],
                embeddings=embeddings[offset : offset + CHROMA_BATCH_SIZE],
                documents=[chunk.text for chunk in batch],
                metadatas=[chunk_metadata(chunk) for chunk in batch],
            )
        return len(chunks)

    def query(self, handle: CollectionHandle, query_embedding: list[float], top_k: int) -> list[RetrievalResult]:
        """Query a Chroma collection and map hits to retrieval results.

        Scores are ``1 - cosine distance``, highest first.
        """
        collection = self.client.get_collection(handle.name)
        n_results = min(top_k, collection.count())
        if n_results <= 0:
            return []
        response = collection.query(
            query_embeddings=[query_embedding],
            n_results=n_results,
            include=["documents", "metadatas", "distances"],
        )

        docs = response["documents"][0]
        metadatas = response["metadatas"][0]
        distances = response["distances"][0]

        return [
            RetrievalResult(chunk=chunk_from_metadata(text, metadata), score=float(1.0 - distance))
            for text, metadata, distance in zip(docs, metadatas, distances, strict=True)
        ]

    def count(self, handle: CollectionHandle) -> int:
        return self.client.get_collection(handle.name).count()


class InMemoryVectorStore:
    """Process-local store using exact cosine search over NumPy matrices."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._collections: dict[str, tuple[list[Chunk], list[list[float]]]] = {}

    def create_collection(self, name: str) -> CollectionHandle:
        with self._lock:
            if name in self._collections:
                raise CollectionExistsError(f"collection {name!r} already exists")
            self._collections[name] = ([], [])
        return CollectionHandle(name=name, chunk_count=0)

    def upsert(self, handle: CollectionHandle, chunks: list[Chunk], embeddings: list[list[float]]) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError(f"got {len(embeddings)} embeddings for {len(chunks)} chunks")
        with self._lock:
            stored_chunks, stored_vectors = self._collections[handle.name]
            positions = {chunk.chunk_id: idx for idx, chunk in enumerate(stored_chunks)}
            for chunk, vector in zip(chunks, embeddings):
                if chunk.chunk_id in positions:
                    stored_vectors[positions[chunk.chunk_id]] = list(vector)
                    stored_chunks[positions[chunk.chunk_id]] = chunk
                else:
                    stored_chunks.append(chunk)
                    stored_vectors.append(list(vector))
        return len(chunks)

    def query(self, handle: CollectionHandle, query_embedding: list[float], top_k: int) -> list[RetrievalResult]:
        with self._lock:
            stored_chunks, stored_vectors = self._collections[handle.name]
            chunks = list(stored_chunks)
            matrix = np.array(stored_vectors, dtype=np.float32)
        if not chunks or top_k <= 0:
            return []
        scores = cosine_similarity(np.array(query_embedding, dtype=np.float32), matrix)
        indices = np.argsort(-scores, kind="stable")[:top_k]
        return [RetrievalResult(chunk=chunks[idx], score=float(scores[idx])) for idx in indices]

    def count(self, handle: CollectionHandle) -> int:
        with self._lock:
            return len(self._collections[handle.name][0])

    def collection_names(self) -> list[str]:
        with self._lock:
            return list(self._collections)


def build_vector_store(backend: str = "chroma", persist_dir: str = "artifacts/chroma") -> VectorStore:
    """Return the configured store implementation."""
    if backend == "memory":
        return InMemoryVectorStore()
    logger.info("Using Chroma vector store at %s", persist_dir)
    return ChromaVectorStore(persist_dir=persist_dir)
