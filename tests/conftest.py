"""Shared pytest fixtures for pdf_rag unit tests."""
from __future__ import annotations

import re
import zlib

import numpy as np
import pytest

from pdf_rag.pipeline import RagPipeline
from pdf_rag.registry import IndexRegistry
from pdf_rag.schema import Chunk, CollectionHandle, RetrievalResult
from pdf_rag.settings import ChunkingSettings
from pdf_rag.vector_store import InMemoryVectorStore

DIM = 1024


class HashingEmbedder:
    """Deterministic bag-of-words embedder; no network access."""

    model_name = "hashing-test"

    def __init__(self, dim: int = DIM) -> None:
        self.dim = dim
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        vector = np.zeros(self.dim, dtype=np.float32)
        for token in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(token.encode("utf-8")) % self.dim] += 1.0
        return vector.tolist()

    def embed(self, text: str) -> list[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]


class RecordingChatModel:
    """Chat service stub that returns a canned answer and keeps every prompt."""

    model_name = "recording-test"

    def __init__(self, answer: str = "Refunds take 14 days. See page 2.") -> None:
        self.answer = answer
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer


def make_chunk(chunk_id: str, text: str, page_number: int = 1, source_filename: str = "doc.pdf") -> Chunk:
    return Chunk(chunk_id=chunk_id, text=text, page_number=page_number, source_filename=source_filename)


def make_page(page_number: int, topic: str, length: int = 1990) -> str:
    sentence = f"Page {page_number} covers {topic} in detail. "
    return (sentence * (length // len(sentence) + 1))[:length]


@pytest.fixture()
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture()
def chat_model() -> RecordingChatModel:
    return RecordingChatModel()


@pytest.fixture()
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture()
def registry() -> IndexRegistry:
    return IndexRegistry(collection_prefix="test_vectors")


@pytest.fixture()
def pipeline(embedder, chat_model, store, registry) -> RagPipeline:
    return RagPipeline(
        embedder=embedder,
        chat_model=chat_model,
        store=store,
        registry=registry,
        chunking=ChunkingSettings(chunk_size=2000, chunk_overlap=200),
    )


@pytest.fixture()
def sample_chunks() -> list[Chunk]:
    return [
        make_chunk("doc-P001-000", "Employees may work remotely from home.", page_number=1),
        make_chunk("doc-P002-001", "Refunds are issued within 14 days of a request.", page_number=2),
        make_chunk("doc-P003-002", "Lost devices must be reported within one hour.", page_number=3),
    ]


@pytest.fixture()
def sample_results(sample_chunks) -> list[RetrievalResult]:
    return [
        RetrievalResult(chunk=sample_chunks[1], score=0.85),
        RetrievalResult(chunk=sample_chunks[0], score=0.72),
        RetrievalResult(chunk=sample_chunks[2], score=0.60),
    ]


@pytest.fixture()
def handle() -> CollectionHandle:
    return CollectionHandle(name="test_vectors_1_1", chunk_count=3, source_filename="doc.pdf")
