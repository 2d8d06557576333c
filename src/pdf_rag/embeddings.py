from __future__ import annotations

import logging
from typing import Protocol

import numpy as np
from openai import OpenAI

from .errors import ConfigurationError
from .settings import OpenAISettings

logger = logging.getLogger(__name__)


class EmbeddingService(Protocol):
    """Text-in, vector-out contract shared by indexing and retrieval.

    The same instance must embed both chunks and queries so that scores are
    comparable.
    """

    model_name: str

    def embed(self, text: str) -> list[float]: ...

    def embed_many(self, texts: list[str]) -> list[list[float]]: ...


def build_openai_client(settings: OpenAISettings) -> OpenAI:
    """Create an OpenAI client with the configured timeout and no SDK retries.

    Raises:
        ConfigurationError: If no API key is configured.
    """
    if not settings.api_key:
        raise ConfigurationError(
            "OPENAI_API_KEY is not defined. Please add your API key to the .env file"
        )
    return OpenAI(api_key=settings.api_key, timeout=settings.timeout_seconds, max_retries=0)


def embed_texts(texts: list[str], model: str = "text-embedding-3-small", client: OpenAI | None = None) -> np.ndarray:
    """Generate embedding vectors for input texts using OpenAI embeddings API.

    Args:
        texts: Input strings to embed.
        model: Embedding model name.
        client: Client to call; a default ``OpenAI()`` is created when omitted.

    Returns:
        A `float32` NumPy matrix shaped `(len(texts), embedding_dim)`.
    """
    client = client or OpenAI()
    response = client.embeddings.create(model=model, input=texts)
    vectors = [row.embedding for row in sorted(response.data, key=lambda row: row.index)]
    return np.array(vectors, dtype=np.float32)


class OpenAIEmbeddingService:
    """Embedding service backed by the OpenAI embeddings endpoint."""

    def __init__(self, client: OpenAI, model_name: str = "text-embedding-3-small", batch_size: int = 100) -> None:
        self.client = client
        self.model_name = model_name
        self.batch_size = batch_size

    @classmethod
    def from_settings(cls, settings: OpenAISettings) -> "OpenAIEmbeddingService":
        return cls(
            client=build_openai_client(settings),
            model_name=settings.embedding_model,
            batch_size=settings.embedding_batch_size,
        )

    def embed(self, text: str) -> list[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in request batches, one vector per input in input order."""
        vectors: list[list[float]] = []
        for offset in range(0, len(texts), self.batch_size):
            batch = texts[offset : offset + self.batch_size]
            matrix = embed_texts(batch, model=self.model_name, client=self.client)
            vectors.extend(matrix.tolist())
        logger.debug("Embedded %d texts with %s", len(texts), self.model_name)
        return vectors


def cosine_similarity(query_vector: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Compute cosine similarity between one query vector and many vectors.

    Args:
        query_vector: Query embedding vector.
        matrix: Candidate embedding matrix where each row is one vector.

    Returns:
        A 1D array of cosine similarity scores aligned to matrix rows.
    """
    query_norm = np.linalg.norm(query_vector)
    matrix_norm = np.linalg.norm(matrix, axis=1)
    denominator = np.maximum(query_norm * matrix_norm, 1e-12)
    return (matrix @ query_vector) / denominator
