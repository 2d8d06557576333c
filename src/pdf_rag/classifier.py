from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .schema import QueryClassification
from .settings import DEFAULT_COMPREHENSIVE_KEYWORDS, RetrievalSettings


def classify(
    query: str,
    keywords: Iterable[str] = DEFAULT_COMPREHENSIVE_KEYWORDS,
    narrow_k: int = 20,
    broad_k: int = 100,
) -> QueryClassification:
    """Decide retrieval breadth from keyword matches in the query.

    Matching is a case-insensitive substring test, so keywords such as
    ``"quiz "`` keep their trailing space as a crude word boundary.

    Args:
        query: Raw user question.
        keywords: Phrases that mark a request as whole-document.
        narrow_k: Chunks to retrieve for ordinary questions.
        broad_k: Chunks to retrieve for comprehensive requests.

    Returns:
        The comprehensive flag and the resolved ``k``.
    """
    lowered = query.lower()
    comprehensive = any(keyword.lower() in lowered for keyword in keywords)
    return QueryClassification(comprehensive=comprehensive, k=broad_k if comprehensive else narrow_k)


@dataclass(slots=True)
class QueryClassifier:
    """Keyword classifier bound to one retrieval configuration."""

    keywords: tuple[str, ...] = DEFAULT_COMPREHENSIVE_KEYWORDS
    narrow_k: int = 20
    broad_k: int = 100

    @classmethod
    def from_settings(cls, settings: RetrievalSettings) -> "QueryClassifier":
        return cls(
            keywords=tuple(settings.comprehensive_keywords),
            narrow_k=settings.narrow_k,
            broad_k=settings.broad_k,
        )

    def __call__(self, query: str) -> QueryClassification:
        return classify(query, self.keywords, self.narrow_k, self.broad_k)
