"""Error taxonomy for the ingestion and question-answering pipeline.

Every failure aborts the current request end-to-end. Components wrap the
exceptions of their collaborators (OpenAI SDK, Chroma, pypdf) in one of the
classes below with ``raise ... from exc`` so the caller sees a single
descriptive error and the original cause stays attached.
"""
from __future__ import annotations

import openai


class PdfRagError(Exception):
    """Base class for pipeline errors.

    Attributes:
        transient: True when the failure came from a timeout, dropped
            connection, rate limit or upstream 5xx and the same request may
            succeed later.
    """

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.transient = transient


class ConfigurationError(PdfRagError):
    """Missing credentials or invalid settings. Never retried."""


class NoActiveCollectionError(PdfRagError):
    """A question arrived before any document was ingested."""

    def __init__(self, message: str = "No PDF has been processed yet. Please upload a PDF first.") -> None:
        super().__init__(message)


class InvalidQueryError(PdfRagError, ValueError):
    """The query text is missing or blank."""

    def __init__(self, message: str = "Query is required") -> None:
        super().__init__(message)


class IngestionFailure(PdfRagError):
    """Segmentation, embedding or indexing failed; the active collection is unchanged."""


class ServiceFailure(PdfRagError):
    """An embedding, vector-store or chat service call failed while answering."""


class RetrievalFailure(ServiceFailure):
    pass


class GenerationFailure(ServiceFailure):
    pass


_TRANSIENT_OPENAI_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def is_transient(exc: BaseException) -> bool:
    """Return True when *exc* is a timeout or other retryable service error."""
    if isinstance(exc, PdfRagError):
        return exc.transient
    return isinstance(exc, _TRANSIENT_OPENAI_ERRORS + (TimeoutError, ConnectionError))
