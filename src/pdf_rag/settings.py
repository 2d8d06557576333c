from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_COMPREHENSIVE_KEYWORDS: tuple[str, ...] = (
    "exam",
    "test ",
    "quiz ",
    "whole pdf",
    "entire document",
    "complete document",
    "summarize everything",
    "all topics",
    "comprehensive",
    "all chapters",
    "all lessons",
    "full content",
)

# Paragraph, line, sentence, word, character.
DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


@dataclass(slots=True)
class OpenAISettings:
    """Runtime model configuration for embedding and generation calls."""

    api_key: str | None = None
    embedding_model: str = "text-embedding-3-small"
    chat_model: str = "gpt-4.1-mini"
    temperature: float = 0.7
    timeout_seconds: float = 60.0
    embedding_batch_size: int = 100


@dataclass(slots=True)
class ChunkingSettings:
    """Segmenter window sizes, in characters."""

    chunk_size: int = 2000
    chunk_overlap: int = 200
    separators: tuple[str, ...] = DEFAULT_SEPARATORS

    def validate(self) -> None:
        validate_chunking(self.chunk_size, self.chunk_overlap)


@dataclass(slots=True)
class RetrievalSettings:
    """Breadth policy used by the query classifier."""

    narrow_k: int = 20
    broad_k: int = 100
    comprehensive_keywords: tuple[str, ...] = DEFAULT_COMPREHENSIVE_KEYWORDS

    def validate(self) -> None:
        if self.narrow_k <= 0 or self.broad_k <= 0:
            raise ConfigurationError("RAG_NARROW_K and RAG_BROAD_K must be positive")
        if self.narrow_k > self.broad_k:
            raise ConfigurationError(
                f"RAG_NARROW_K ({self.narrow_k}) must not exceed RAG_BROAD_K ({self.broad_k})"
            )


@dataclass(slots=True)
class StoreSettings:
    """Vector store backend selection and persistence location."""

    backend: str = "chroma"
    persist_dir: str = "artifacts/chroma"
    collection_prefix: str = "pdf_vectors"


@dataclass(slots=True)
class Paths:
    """Filesystem locations used by the service."""

    upload_dir: str = "uploads"


@dataclass(slots=True)
class Settings:
    """All configuration consumed by the pipeline and its transport."""

    openai: OpenAISettings = field(default_factory=OpenAISettings)
    chunking: ChunkingSettings = field(default_factory=ChunkingSettings)
    retrieval: RetrievalSettings = field(default_factory=RetrievalSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    paths: Paths = field(default_factory=Paths)
    log_level: str = "INFO"


def validate_chunking(chunk_size: int, chunk_overlap: int) -> None:
    """Reject window sizes the segmenter cannot honour.

    Raises:
        ConfigurationError: If the size is not positive, the overlap is
            negative, or the overlap is not smaller than the size.
    """
    if chunk_size <= 0:
        raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ConfigurationError(f"chunk_overlap must not be negative, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ConfigurationError(
            f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_keywords(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    # Only leading spaces are dropped; a trailing space ("quiz ") acts as a word guard.
    return tuple(item.lstrip().lower() for item in raw.split(",") if item.strip())


def load_settings() -> Settings:
    """Load environment-backed settings and return a validated config bundle.

    Returns:
        Settings with OpenAI, chunking, retrieval, store and path sections.

    Raises:
        ConfigurationError: If a numeric variable does not parse or the
            resulting values are inconsistent.
    """
    load_dotenv()
    settings = Settings(
        openai=OpenAISettings(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            embedding_model=os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
            chat_model=os.getenv("OPENAI_CHAT_MODEL", "gpt-4.1-mini"),
            temperature=_env_float("OPENAI_TEMPERATURE", 0.7),
            timeout_seconds=_env_float("OPENAI_TIMEOUT_SECONDS", 60.0),
            embedding_batch_size=_env_int("OPENAI_EMBEDDING_BATCH_SIZE", 100),
        ),
        chunking=ChunkingSettings(
            chunk_size=_env_int("CHUNK_SIZE", 2000),
            chunk_overlap=_env_int("CHUNK_OVERLAP", 200),
        ),
        retrieval=RetrievalSettings(
            narrow_k=_env_int("RAG_NARROW_K", 20),
            broad_k=_env_int("RAG_BROAD_K", 100),
            comprehensive_keywords=_env_keywords("RAG_COMPREHENSIVE_KEYWORDS", DEFAULT_COMPREHENSIVE_KEYWORDS),
        ),
        store=StoreSettings(
            backend=os.getenv("VECTOR_STORE", "chroma").lower(),
            persist_dir=os.getenv("CHROMA_PERSIST_DIR", "artifacts/chroma"),
            collection_prefix=os.getenv("COLLECTION_PREFIX", "pdf_vectors"),
        ),
        paths=Paths(upload_dir=os.getenv("UPLOAD_DIR", "uploads")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
    settings.chunking.validate()
    settings.retrieval.validate()
    if settings.store.backend not in ("chroma", "memory"):
        raise ConfigurationError(f"VECTOR_STORE must be 'chroma' or 'memory', got {settings.store.backend!r}")
    if settings.openai.embedding_batch_size <= 0:
        raise ConfigurationError("OPENAI_EMBEDDING_BATCH_SIZE must be positive")
    return settings
