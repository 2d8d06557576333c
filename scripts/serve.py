import os

import uvicorn

from pdf_rag.api import create_app


def main() -> None:
    """Serve the upload and chat API on PORT (default 5000)."""
    port = int(os.getenv("PORT", "5000"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
