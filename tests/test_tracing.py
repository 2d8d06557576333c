"""Tests for tracing.py — provider setup, span wrappers and pipeline spans.

Spans are collected with InMemorySpanExporter so tests run fully offline.
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from pdf_rag.errors import NoActiveCollectionError
from pdf_rag.pipeline import RagPipeline
from pdf_rag.schema import CollectionHandle
from pdf_rag.tracing import (
    ATTR_CHUNK_COUNT,
    ATTR_INPUT_VALUE,
    ATTR_LLM_MODEL_NAME,
    ATTR_OUTPUT_VALUE,
    ATTR_QUERY_COMPREHENSIVE,
    ATTR_RETRIEVAL_DOCUMENTS,
    ATTR_RETRIEVAL_TOP_K,
    configure_tracing,
    get_tracer,
    traced_generation,
    traced_retrieval,
)


# ---------------------------------------------------------------------------
# Shared in-memory exporter fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
def mem_exporter() -> InMemorySpanExporter:
    """Fresh InMemorySpanExporter behind a newly configured provider."""
    exporter = InMemorySpanExporter()
    configure_tracing(exporter=exporter, service_name="test-service")
    return exporter


@pytest.fixture()
def tracer(mem_exporter) -> trace.Tracer:
    return get_tracer("test")


def _spans_by_name(exporter: InMemorySpanExporter) -> dict:
    return {span.name: span for span in exporter.get_finished_spans()}


# ---------------------------------------------------------------------------
# configure_tracing / get_tracer
# ---------------------------------------------------------------------------


class TestConfigureTracing:
    def test_returns_tracer_provider(self):
        provider = configure_tracing(exporter=InMemorySpanExporter())
        assert isinstance(provider, TracerProvider)

    def test_console_exporter_when_nothing_given(self):
        assert configure_tracing() is not None

    def test_missing_otlp_package_raises_import_error(self, monkeypatch):
        import builtins

        real_import = builtins.__import__

        def mock_import(name, *args, **kwargs):
            if "otlp" in name:
                raise ImportError("mocked missing package")
            return real_import(name, *args, **kwargs)

        monkeypatch.setattr(builtins, "__import__", mock_import)
        with pytest.raises(ImportError, match="opentelemetry-exporter-otlp"):
            configure_tracing(endpoint="http://localhost:6006/v1/traces")


class TestGetTracer:
    def test_spans_reach_configured_exporter(self, mem_exporter, tracer):
        with tracer.start_as_current_span("unit"):
            pass
        assert [s.name for s in mem_exporter.get_finished_spans()] == ["unit"]


# ---------------------------------------------------------------------------
# traced_retrieval / traced_generation
# ---------------------------------------------------------------------------


class TestTracedRetrieval:
    def test_records_query_k_and_result_count(self, mem_exporter, tracer, sample_results):
        wrapped = traced_retrieval(lambda q, k, h: sample_results[:k], tracer)
        handle = CollectionHandle(name="pdf_vectors_1_1", chunk_count=3)
        assert wrapped("refunds", 2, handle) == sample_results[:2]
        span = _spans_by_name(mem_exporter)["retrieval"]
        assert span.attributes[ATTR_INPUT_VALUE] == "refunds"
        assert span.attributes[ATTR_RETRIEVAL_TOP_K] == 2
        assert span.attributes[ATTR_RETRIEVAL_DOCUMENTS] == 2
        assert span.status.status_code == trace.StatusCode.OK

    def test_error_status_and_reraise(self, mem_exporter, tracer):
        retriever = MagicMock(side_effect=RuntimeError("store down"))
        wrapped = traced_retrieval(retriever, tracer)
        with pytest.raises(RuntimeError):
            wrapped("q", 5, None)
        span = _spans_by_name(mem_exporter)["retrieval"]
        assert span.status.status_code == trace.StatusCode.ERROR
        assert span.events[0].name == "exception"


class TestTracedGeneration:
    def test_records_model_and_truncated_output(self, mem_exporter, tracer):
        wrapped = traced_generation(lambda prompt: "x" * 800, tracer, model_name="gpt-4.1-mini")
        wrapped("prompt")
        span = _spans_by_name(mem_exporter)["generation"]
        assert span.attributes[ATTR_LLM_MODEL_NAME] == "gpt-4.1-mini"
        assert len(span.attributes[ATTR_OUTPUT_VALUE]) == 500

    def test_error_status_and_reraise(self, mem_exporter, tracer):
        wrapped = traced_generation(MagicMock(side_effect=TimeoutError("slow")), tracer)
        with pytest.raises(TimeoutError):
            wrapped("prompt")
        assert _spans_by_name(mem_exporter)["generation"].status.status_code == trace.StatusCode.ERROR


# ---------------------------------------------------------------------------
# Pipeline spans
# ---------------------------------------------------------------------------


class TestPipelineSpans:
    def test_ask_produces_nested_trace(self, mem_exporter, tracer, embedder, chat_model, store, registry):
        pipeline = RagPipeline(embedder, chat_model, store, registry, tracer=tracer)
        pipeline.ingest("Refunds are issued within 14 days.", None, "doc.pdf")
        pipeline.ask("Write a comprehensive exam")

        spans = _spans_by_name(mem_exporter)
        assert {"ingest", "rag-pipeline", "retrieval", "generation"} <= set(spans)
        assert spans["ingest"].attributes[ATTR_CHUNK_COUNT] == 1
        root = spans["rag-pipeline"]
        assert root.attributes[ATTR_QUERY_COMPREHENSIVE] is True
        assert root.attributes[ATTR_RETRIEVAL_TOP_K] == 100
        assert spans["retrieval"].parent.span_id == root.context.span_id
        assert spans["generation"].parent.span_id == root.context.span_id

    def test_failed_ask_marks_root_span(self, mem_exporter, tracer, embedder, chat_model, store, registry):
        pipeline = RagPipeline(embedder, chat_model, store, registry, tracer=tracer)
        with pytest.raises(NoActiveCollectionError):
            pipeline.ask("anything")
        assert _spans_by_name(mem_exporter)["rag-pipeline"].status.status_code == trace.StatusCode.ERROR
