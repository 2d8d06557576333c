from pdf_rag.chunking import segment
from pdf_rag.classifier import classify
from pdf_rag.io_utils import join_pages


if __name__ == "__main__":
    text, page_starts = join_pages(["Alpha paragraph. " * 80, "Beta paragraph. " * 80, "Gamma."])
    chunks = segment(text, page_starts, chunk_size=500, chunk_overlap=50)
    print(
        {
            "chars": len(text),
            "chunks": len(chunks),
            "pages": sorted({chunk.page_number for chunk in chunks}),
            "exam_query": classify("make me a comprehensive exam"),
        }
    )
