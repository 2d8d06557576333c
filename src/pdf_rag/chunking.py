from __future__ import annotations

from bisect import bisect_right
from collections import deque
from collections.abc import Sequence

from .schema import Chunk
from .settings import DEFAULT_SEPARATORS, validate_chunking

# A piece is a half-open ``(start, end)`` span into the text being split.
Span = tuple[int, int]


def segment(
    document_text: str,
    page_starts: Sequence[int] | None,
    chunk_size: int = 2000,
    chunk_overlap: int = 200,
    source_filename: str = "",
    separators: Sequence[str] = DEFAULT_SEPARATORS,
) -> list[Chunk]:
    """Split document text into overlapping, page-tagged chunks.

    Uses recursive-separator splitting: paragraph breaks first, then line
    breaks, sentence ends, spaces and finally raw character positions, until
    every piece fits in ``chunk_size``. Adjacent pieces are then merged back
    into windows of at most ``chunk_size`` characters, carrying up to
    ``chunk_overlap`` characters of trailing context into the next window.

    Separators stay attached to the piece before them, so every chunk is an
    exact slice of ``document_text`` starting at ``chunk.start_index``.

    Args:
        document_text: Full text of the document, pages concatenated.
        page_starts: Offset at which each page begins, in page order. Page
            numbers are 1-based. ``None`` or empty treats the text as page 1.
        chunk_size: Target maximum characters per chunk.
        chunk_overlap: Characters of context shared by consecutive chunks.
        source_filename: Name of the uploaded file, copied onto each chunk.
        separators: Split points in priority order; ``""`` means characters.

    Returns:
        Chunks in document order. Whitespace-only windows are dropped.

    Raises:
        ConfigurationError: If ``chunk_overlap >= chunk_size`` or either
            value is out of range. Checked before any splitting.
        ValueError: If ``page_starts`` is not increasing or out of bounds.
    """
    validate_chunking(chunk_size, chunk_overlap)
    starts = normalize_page_starts(len(document_text), page_starts)
    if not document_text.strip():
        return []

    prefix = _chunk_prefix(source_filename)
    chunks: list[Chunk] = []
    for start, end in split_spans(document_text, chunk_size, chunk_overlap, separators):
        text = document_text[start:end]
        if not text.strip():
            continue
        first_visible = start + (len(text) - len(text.lstrip()))
        last_visible = start + len(text.rstrip()) - 1
        first_page = page_at(starts, first_visible)
        last_page = page_at(starts, last_visible)
        chunks.append(
            Chunk(
                chunk_id=f"{prefix}-P{first_page:03d}-{len(chunks):03d}",
                text=text,
                page_number=first_page,
                source_filename=source_filename,
                start_index=start,
                page_numbers=tuple(range(first_page, last_page + 1)),
            )
        )
    return chunks


def normalize_page_starts(text_length: int, page_starts: Sequence[int] | None) -> list[int]:
    """Validate the page-boundary map, defaulting to a single page."""
    if not page_starts:
        return [0]

    starts = list(page_starts)
    if starts[0] != 0:
        raise ValueError(f"first page must start at offset 0, got {starts[0]}")
    for previous, current in zip(starts, starts[1:]):
        if current < previous:
            raise ValueError(f"page starts must be non-decreasing, got {previous} then {current}")
    if starts[-1] > text_length:
        raise ValueError(f"page start {starts[-1]} is beyond the end of the text ({text_length})")
    return starts


def page_at(page_starts: Sequence[int], offset: int) -> int:
    """Return the 1-based page number holding character ``offset``."""
    return max(bisect_right(page_starts, offset), 1)


def split_spans(
    text: str,
    chunk_size: int,
    chunk_overlap: int,
    separators: Sequence[str] = DEFAULT_SEPARATORS,
) -> list[Span]:
    """Return merged window spans over ``text`` in order."""
    if not text:
        return []
    return _split_recursive(text, 0, len(text), list(separators), chunk_size, chunk_overlap)


def _split_recursive(
    text: str,
    start: int,
    end: int,
    separators: list[str],
    chunk_size: int,
    chunk_overlap: int,
) -> list[Span]:
    separator = separators[-1]
    remaining: list[str] = []
    for idx, candidate in enumerate(separators):
        if candidate == "":
            separator = candidate
            break
        if text.find(candidate, start, end) != -1:
            separator = candidate
            remaining = separators[idx + 1 :]
            break

    windows: list[Span] = []
    fitting: list[Span] = []
    for piece in _split_on(text, start, end, separator):
        if piece[1] - piece[0] <= chunk_size:
            fitting.append(piece)
            continue
        if fitting:
            windows.extend(_merge(fitting, chunk_size, chunk_overlap))
            fitting = []
        if remaining:
            windows.extend(_split_recursive(text, piece[0], piece[1], remaining, chunk_size, chunk_overlap))
        else:
            # Atomic unit with no finer separator left; emitted oversized.
            windows.append(piece)
    if fitting:
        windows.extend(_merge(fitting, chunk_size, chunk_overlap))
    return windows


def _split_on(text: str, start: int, end: int, separator: str) -> list[Span]:
    if separator == "":
        return [(idx, idx + 1) for idx in range(start, end)]

    pieces: list[Span] = []
    cursor = start
    while cursor < end:
        hit = text.find(separator, cursor, end)
        if hit == -1:
            pieces.append((cursor, end))
            break
        piece_end = min(hit + len(separator), end)
        pieces.append((cursor, piece_end))
        cursor = piece_end
    return pieces


def _merge(pieces: list[Span], chunk_size: int, chunk_overlap: int) -> list[Span]:
    """Greedily pack adjacent pieces into windows with trailing overlap."""
    windows: list[Span] = []
    current: deque[Span] = deque()
    total = 0
    for piece in pieces:
        length = piece[1] - piece[0]
        if current and total + length > chunk_size:
            windows.append((current[0][0], current[-1][1]))
            # Keep the tail of the window as leading context for the next one.
            while current and (total > chunk_overlap or total + length > chunk_size):
                total -= current[0][1] - current[0][0]
                current.popleft()
        current.append(piece)
        total += length
    if current:
        windows.append((current[0][0], current[-1][1]))
    return windows


def _chunk_prefix(source_filename: str) -> str:
    stem = source_filename.rsplit("/", 1)[-1].rsplit(".", 1)[0]
    return stem or "DOC"
