import sys
from pathlib import Path

from pdf_rag.chunking import segment
from pdf_rag.io_utils import join_pages, load_pdf_pages, save_chunks
from pdf_rag.settings import load_settings


def main() -> None:
    """Segment a PDF with the configured window sizes and write chunks as JSONL."""
    if len(sys.argv) != 3:
        raise SystemExit("usage: chunk_pdf.py <input.pdf> <output.jsonl>")
    source, destination = sys.argv[1], sys.argv[2]
    settings = load_settings()
    text, page_starts = join_pages(load_pdf_pages(source))
    chunks = segment(
        text,
        page_starts,
        chunk_size=settings.chunking.chunk_size,
        chunk_overlap=settings.chunking.chunk_overlap,
        source_filename=Path(source).name,
    )
    save_chunks(chunks, destination)
    print(f"Wrote {len(chunks)} chunks to {destination}")


if __name__ == "__main__":
    main()
