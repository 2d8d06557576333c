from __future__ import annotations

from dataclasses import asdict
import json
import logging
from pathlib import Path
from typing import BinaryIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .errors import IngestionFailure
from .schema import Chunk

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


def load_pdf_pages(source: str | Path | BinaryIO) -> list[str]:
    """Extract text per page; pages without a text layer become ``""``.

    Raises:
        IngestionFailure: If the file is not a readable PDF or a page's
            content stream cannot be decoded.
    """
    try:
        reader = PdfReader(source)
        page_list = list(reader.pages)
    except (PyPdfError, OSError, ValueError) as exc:
        raise IngestionFailure(f"Could not read PDF: {exc}") from exc

    pages: list[str] = []
    for number, page in enumerate(page_list, start=1):
        try:
            pages.append(page.extract_text() or "")
        except Exception as exc:
            # pypdf surfaces malformed content streams as KeyError, TypeError and friends.
            raise IngestionFailure(f"Could not extract text from page {number}: {exc!r}") from exc
    logger.info("Extracted %d pages", len(pages))
    return pages


def join_pages(pages: list[str], separator: str = PAGE_SEPARATOR) -> tuple[str, list[int]]:
    """Concatenate page texts and return the offset where each page begins.

    The separator is appended to the end of every page but the last, so a
    page break is also a paragraph break for the segmenter.
    """
    parts: list[str] = []
    page_starts: list[int] = []
    offset = 0
    for idx, page in enumerate(pages):
        page_starts.append(offset)
        text = page + separator if idx < len(pages) - 1 else page
        parts.append(text)
        offset += len(text)
    return "".join(parts), page_starts


def _load_jsonl(path: str | Path) -> list[dict]:
    records: list[dict] = []
    with Path(path).open("r", encoding="utf-8") as file_handle:
        for line in file_handle:
            records.append(json.loads(line))
    return records


def save_chunks(chunks: list[Chunk], path: str | Path) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    with destination.open("w", encoding="utf-8") as file_handle:
        for chunk in chunks:
            file_handle.write(json.dumps(asdict(chunk)) + "\n")


def load_chunks(path: str | Path) -> list[Chunk]:
    return [
        Chunk(**{**record, "page_numbers": tuple(record.get("page_numbers", ()))})
        for record in _load_jsonl(path)
    ]
