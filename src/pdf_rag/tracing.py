"""OpenTelemetry tracing helpers for the PDF question-answering pipeline.

The orchestrator opens a parent span per request (``ingest`` or
``rag-pipeline``) with child spans for ``retrieval`` and ``generation``, so
one question shows up as a single trace tree in the backend.

Usage with an OTLP collector (e.g. Arize Phoenix):

    from pdf_rag.tracing import configure_tracing

    configure_tracing(
        endpoint="http://localhost:6006/v1/traces",
        service_name="pdf-rag",
    )

Without an endpoint, spans are printed to stdout. Until
:func:`configure_tracing` is called, spans go to the no-op global provider.
"""
from __future__ import annotations

from typing import Callable

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)

from .schema import CollectionHandle, RetrievalResult

# ---------------------------------------------------------------------------
# OpenInference semantic-convention attribute names, plus pipeline-specific ones
# ---------------------------------------------------------------------------

ATTR_INPUT_VALUE = "input.value"
ATTR_OUTPUT_VALUE = "output.value"
ATTR_LLM_MODEL_NAME = "llm.model_name"
ATTR_RETRIEVAL_DOCUMENTS = "retrieval.documents"
ATTR_RETRIEVAL_TOP_K = "retrieval.top_k"
ATTR_QUERY_COMPREHENSIVE = "query.comprehensive"
ATTR_COLLECTION_NAME = "collection.name"
ATTR_CHUNK_COUNT = "ingest.chunk_count"

OUTPUT_PREVIEW_CHARS = 500

# ---------------------------------------------------------------------------
# Provider lifecycle helpers
# ---------------------------------------------------------------------------

_provider: TracerProvider | None = None


def configure_tracing(
    endpoint: str | None = None,
    service_name: str = "pdf-rag",
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """Create and register a global TracerProvider.

    Args:
        endpoint: OTLP HTTP endpoint URL to send traces to. When *None* and
            no custom *exporter* is given, spans are printed to stdout via
            :class:`~opentelemetry.sdk.trace.export.ConsoleSpanExporter`.
        service_name: Label identifying this service in the backend.
        exporter: An already-constructed exporter, e.g. an
            ``InMemorySpanExporter`` in tests. When provided, *endpoint* is
            ignored.

    Returns:
        The configured provider, also installed as the global OTel provider.
    """
    global _provider

    resource = Resource(attributes={SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)

    if exporter is not None:
        chosen_exporter: SpanExporter = exporter
    elif endpoint is not None:
        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                OTLPSpanExporter,
            )
        except ImportError as exc:  # pragma: no cover
            raise ImportError(
                "opentelemetry-exporter-otlp-proto-http is required to export "
                "traces to an OTLP endpoint.  Install it with:\n"
                "  pip install 'pdf-rag[otlp]'"
            ) from exc
        chosen_exporter = OTLPSpanExporter(endpoint=endpoint)
    else:
        chosen_exporter = ConsoleSpanExporter()

    # Spans are exported synchronously so tests can read them immediately.
    provider.add_span_processor(SimpleSpanProcessor(chosen_exporter))
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def get_tracer(name: str) -> trace.Tracer:
    """Return a tracer from the provider set by :func:`configure_tracing`.

    Falls back to the global provider (no-op unless one was installed).
    """
    if _provider is not None:
        return _provider.get_tracer(name)
    return trace.get_tracer(name)


# ---------------------------------------------------------------------------
# Span-wrapping helpers for the retrieval and generation stages
# ---------------------------------------------------------------------------


def traced_retrieval(
    retriever: Callable[[str, int, CollectionHandle | None], list[RetrievalResult]],
    tracer: trace.Tracer,
) -> Callable[[str, int, CollectionHandle | None], list[RetrievalResult]]:
    """Wrap a retriever so every call is recorded as a ``retrieval`` span.

    The span records the query, the requested ``k``, the collection name and
    the number of results. Status is ERROR when the retriever raises; the
    exception is recorded and re-raised.
    """

    def _wrapped(question: str, top_k: int, handle: CollectionHandle | None) -> list[RetrievalResult]:
        with tracer.start_as_current_span("retrieval") as span:
            span.set_attribute(ATTR_INPUT_VALUE, question)
            span.set_attribute(ATTR_RETRIEVAL_TOP_K, top_k)
            if handle is not None:
                span.set_attribute(ATTR_COLLECTION_NAME, handle.name)
            try:
                results = retriever(question, top_k, handle)
                span.set_attribute(ATTR_RETRIEVAL_DOCUMENTS, len(results))
                span.set_status(trace.StatusCode.OK)
                return results
            except Exception as exc:
                span.set_status(trace.StatusCode.ERROR, str(exc))
                span.record_exception(exc)
                raise

    return _wrapped


def traced_generation(
    complete: Callable[[str], str],
    tracer: trace.Tracer,
    model_name: str = "",
) -> Callable[[str], str]:
    """Wrap a prompt-completion callable so every call is a ``generation`` span.

    The span records the model name (when given) and the first
    ``OUTPUT_PREVIEW_CHARS`` characters of the answer. The prompt itself is
    not attached since it embeds the whole retrieved context.
    """

    def _wrapped(prompt: str) -> str:
        with tracer.start_as_current_span("generation") as span:
            if model_name:
                span.set_attribute(ATTR_LLM_MODEL_NAME, model_name)
            try:
                answer = complete(prompt)
                span.set_attribute(ATTR_OUTPUT_VALUE, answer[:OUTPUT_PREVIEW_CHARS])
                span.set_status(trace.StatusCode.OK)
                return answer
            except Exception as exc:
                span.set_status(trace.StatusCode.ERROR, str(exc))
                span.record_exception(exc)
                raise

    return _wrapped
