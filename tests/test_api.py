"""Tests for api.py — upload and chat routes over an offline pipeline."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from pdf_rag.api import create_app, error_status
from pdf_rag.errors import (
    ConfigurationError,
    GenerationFailure,
    IngestionFailure,
    InvalidQueryError,
    NoActiveCollectionError,
    RetrievalFailure,
)
from pdf_rag.settings import Paths, Settings


@pytest.fixture()
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture()
def client(pipeline, upload_dir) -> TestClient:
    app = create_app(pipeline=pipeline, settings=Settings(paths=Paths(upload_dir=str(upload_dir))))
    return TestClient(app)


def _upload(client: TestClient, name: str = "guide.pdf", content_type: str = "application/pdf"):
    return client.post("/api/upload-pdf", files={"pdf": (name, b"not really a pdf", content_type)})


class TestUpload:
    @patch("pdf_rag.pipeline.load_pdf_pages")
    def test_success(self, mock_load, client, upload_dir):
        mock_load.return_value = ["Refunds are issued within 14 days.", "Contact support."]
        response = _upload(client)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "PDF processed successfully!"
        assert body["chunks"] == 1
        assert body["filename"] == "guide.pdf"
        assert body["collection"].startswith("test_vectors_")

    @patch("pdf_rag.pipeline.load_pdf_pages")
    def test_transient_file_is_deleted(self, mock_load, client, upload_dir):
        mock_load.return_value = ["Some text."]
        _upload(client)
        assert list(upload_dir.iterdir()) == []

    @patch("pdf_rag.pipeline.load_pdf_pages")
    def test_transient_file_deleted_on_failure(self, mock_load, client, upload_dir):
        mock_load.return_value = [""]
        response = _upload(client)
        assert response.status_code == 500
        assert "extractable text" in response.json()["detail"]
        assert list(upload_dir.iterdir()) == []

    def test_non_pdf_rejected(self, client):
        response = _upload(client, name="notes.txt", content_type="text/plain")
        assert response.status_code == 400
        assert response.json()["detail"] == "Only PDF files are allowed!"

    def test_missing_file_rejected(self, client):
        response = client.post("/api/upload-pdf")
        assert response.status_code == 400
        assert response.json()["detail"] == "No PDF file uploaded"

    def test_unreadable_pdf_is_server_error(self, client):
        response = _upload(client)
        assert response.status_code == 500
        assert "Could not read PDF" in response.json()["detail"]


class TestChat:
    def test_before_upload_is_user_error(self, client):
        response = client.post("/api/chat", json={"query": "what is the refund policy?"})
        assert response.status_code == 400
        assert "upload a PDF first" in response.json()["detail"]

    def test_blank_query_is_user_error(self, client):
        response = client.post("/api/chat", json={"query": "  "})
        assert response.status_code == 400
        assert response.json()["detail"] == "Query is required"

    def test_missing_query_field_is_user_error(self, client):
        assert client.post("/api/chat", json={}).status_code == 400

    def test_null_query_is_user_error(self, client):
        response = client.post("/api/chat", json={"query": None})
        assert response.status_code == 400
        assert response.json() == {"detail": "Query is required"}

    @patch("pdf_rag.pipeline.load_pdf_pages")
    def test_answer_after_upload(self, mock_load, client, chat_model):
        mock_load.return_value = ["Refunds are issued within 14 days."]
        _upload(client)
        response = client.post("/api/chat", json={"query": "how long do refunds take?"})
        assert response.status_code == 200
        assert response.json() == {"answer": chat_model.answer, "relevantChunks": 1}

    def test_generation_failure_has_no_partial_answer(self, pipeline, upload_dir):
        pipeline.ingest("Some text.", None, "a.pdf")
        pipeline.ask = MagicMock(side_effect=GenerationFailure("Chat model call failed: quota"))
        client = TestClient(create_app(pipeline=pipeline, settings=Settings(paths=Paths(upload_dir=str(upload_dir)))))
        response = client.post("/api/chat", json={"query": "q"})
        assert response.status_code == 502
        assert response.json() == {"detail": "Chat model call failed: quota"}


class TestHealth:
    def test_reports_active_collection(self, client, pipeline):
        assert client.get("/health").json() == {"status": "ok", "activeCollection": None}
        result = pipeline.ingest("Some text.", None, "a.pdf")
        assert client.get("/health").json()["activeCollection"] == result.collection_id


@pytest.mark.parametrize(
    "exc,status",
    [
        (InvalidQueryError(), 400),
        (NoActiveCollectionError(), 400),
        (RetrievalFailure("down", transient=True), 503),
        (GenerationFailure("bad request"), 502),
        (IngestionFailure("no text"), 500),
        (IngestionFailure("timeout", transient=True), 503),
        (ConfigurationError("missing key"), 500),
    ],
)
def test_error_status(exc, status):
    assert error_status(exc) == status
