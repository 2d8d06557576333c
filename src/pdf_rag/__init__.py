"""Ask grounded questions about an uploaded PDF."""

from .schema import Answer, Chunk, CollectionHandle, IngestResult, QueryClassification, RetrievalResult

__all__ = ["Answer", "Chunk", "CollectionHandle", "IngestResult", "QueryClassification", "RetrievalResult"]
