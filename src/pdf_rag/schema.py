from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Chunk:
    """Contiguous slice of the document text used for retrieval."""

    chunk_id: str
    text: str
    page_number: int
    source_filename: str
    start_index: int = 0
    page_numbers: tuple[int, ...] = ()

    @property
    def pages(self) -> tuple[int, ...]:
        """Every page the chunk text touches, first page first."""
        return self.page_numbers or (self.page_number,)

    @property
    def end_index(self) -> int:
        return self.start_index + len(self.text)


@dataclass(frozen=True, slots=True)
class CollectionHandle:
    """Reference to one indexed, immutable vector-store collection."""

    name: str
    chunk_count: int
    source_filename: str = ""


@dataclass(frozen=True, slots=True)
class QueryClassification:
    """Retrieval breadth decided for a single query."""

    comprehensive: bool
    k: int


@dataclass(slots=True)
class RetrievalResult:
    """One retrieved chunk with its similarity to the query."""

    chunk: Chunk
    score: float

    @property
    def text(self) -> str:
        return self.chunk.text

    @property
    def page_number(self) -> int:
        return self.chunk.page_number


@dataclass(slots=True)
class IngestResult:
    """Outcome of a successful ingestion."""

    chunk_count: int
    collection_id: str
    filename: str


@dataclass(slots=True)
class Answer:
    """Generated answer plus the number of chunks it was grounded on."""

    text: str
    chunks_used: int
    comprehensive: bool = False
