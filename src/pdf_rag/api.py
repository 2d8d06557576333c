"""HTTP transport for PDF upload and chat.

Run with ``uvicorn pdf_rag.api:create_app --factory`` or ``python scripts/serve.py``.
Handlers are plain ``def`` functions, so FastAPI runs each request on its
worker thread pool and a slow embedding or chat call does not block others.
"""
from __future__ import annotations

import logging
import os
import tempfile
import uuid
from pathlib import Path

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .errors import (
    InvalidQueryError,
    NoActiveCollectionError,
    PdfRagError,
    ServiceFailure,
)
from .pipeline import RagPipeline, build_pipeline
from .settings import Settings, load_settings

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    query: str | None = None


class ChatResponse(BaseModel):
    answer: str
    relevantChunks: int


class UploadResponse(BaseModel):
    message: str
    chunks: int
    filename: str
    collection: str


class HealthResponse(BaseModel):
    status: str = "ok"
    activeCollection: str | None = Field(default=None)


def error_status(exc: PdfRagError) -> int:
    """Map a pipeline error onto the HTTP status returned to the client."""
    if isinstance(exc, (InvalidQueryError, NoActiveCollectionError)):
        return 400
    if exc.transient:
        return 503
    if isinstance(exc, ServiceFailure):
        return 502
    return 500


def _is_pdf(upload: UploadFile) -> bool:
    if upload.content_type == "application/pdf":
        return True
    return bool(upload.filename) and upload.filename.lower().endswith(".pdf")


def create_app(pipeline: RagPipeline | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI app around an injected or settings-built pipeline.

    Raises:
        ConfigurationError: If settings are invalid or credentials are missing.
    """
    settings = settings or load_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
    pipeline = pipeline or build_pipeline(settings)
    upload_dir = Path(settings.paths.upload_dir)

    app = FastAPI(title="pdf-rag")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.pipeline = pipeline

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        handle = pipeline.registry.peek()
        return HealthResponse(activeCollection=handle.name if handle else None)

    @app.post("/api/upload-pdf", response_model=UploadResponse)
    def upload_pdf(pdf: UploadFile | None = File(None)) -> UploadResponse:
        if pdf is None or not pdf.filename:
            raise HTTPException(status_code=400, detail="No PDF file uploaded")
        if not _is_pdf(pdf):
            raise HTTPException(status_code=400, detail="Only PDF files are allowed!")

        upload_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f"{uuid.uuid4().hex}-", suffix=".pdf", dir=upload_dir)
        try:
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(pdf.file.read())
            result = pipeline.ingest_pdf(tmp_path, filename=pdf.filename)
        except PdfRagError as exc:
            logger.exception("Upload of %r failed", pdf.filename)
            raise HTTPException(status_code=error_status(exc), detail=exc.message) from exc
        finally:
            Path(tmp_path).unlink(missing_ok=True)

        return UploadResponse(
            message="PDF processed successfully!",
            chunks=result.chunk_count,
            filename=pdf.filename,
            collection=result.collection_id,
        )

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(request: ChatRequest) -> ChatResponse:
        try:
            answer = pipeline.ask(request.query)
        except (InvalidQueryError, NoActiveCollectionError) as exc:
            logger.warning("Rejected chat request: %s", exc.message)
            raise HTTPException(status_code=400, detail=exc.message) from exc
        except PdfRagError as exc:
            logger.exception("Error processing chat query")
            raise HTTPException(status_code=error_status(exc), detail=exc.message) from exc
        return ChatResponse(answer=answer.text, relevantChunks=answer.chunks_used)

    return app

