from __future__ import annotations

from typing import Protocol

from openai import OpenAI

from .embeddings import build_openai_client
from .schema import RetrievalResult
from .settings import OpenAISettings

REFUSAL = "I'm sorry, the provided document does not contain enough information to answer that question."
CITATION_INSTRUCTION = 'Mention "See page X" to explicitly direct users to the document for more details.'

BASE_INSTRUCTIONS = (
    "You are an intelligent, helpful, and context-aware AI assistant that answers user questions "
    "using only the content retrieved from a PDF document. This document has been parsed and chunked, "
    "with each chunk associated with its corresponding page number.\n\n"
    "Your primary goals are:\n"
    "1. Accurately answer the user's question based solely on the given context.\n"
    "2. Cite page numbers wherever relevant to help the user locate the exact source.\n"
    "3. Avoid speculation or generating information not found in the context.\n"
)

COMPREHENSIVE_INSTRUCTIONS = (
    "SPECIAL INSTRUCTIONS FOR COMPREHENSIVE QUERIES:\n"
    "- The user is asking for comprehensive analysis (exam questions, full summary, etc.)\n"
    "- You have access to extensive content from the document\n"
    "- Create detailed, thoughtful responses that utilize the full scope of available content\n"
    "- For exam questions: Create challenging questions that test deep understanding of multiple concepts\n"
    "- Draw connections between different sections and topics\n"
)

RULES = (
    '- Only use the information present in the "Context" section.\n'
    "- If the context contains multiple relevant pieces from different pages, synthesize them into "
    "a coherent answer and cite all relevant page numbers.\n"
    "- If the answer is **not** in the provided context, respond with:\n"
    f'  "{REFUSAL}"\n'
    "- If the user asks a very broad question and only partial information is available, answer what "
    "you can and recommend the most relevant page(s) for further reading.\n"
    "- Use a professional and informative tone in all answers.\n"
    f"- {CITATION_INSTRUCTION}\n"
)


class ChatService(Protocol):
    """Prompt-in, text-out contract for the answering model."""

    model_name: str

    def complete(self, prompt: str) -> str: ...


def build_context(results: list[RetrievalResult]) -> str:
    """Join retrieved chunk texts in retrieval order, each under its page label."""
    return "\n\n".join(f"[Page {result.page_number}]\n{result.text}" for result in results)


def compose_prompt(question: str, results: list[RetrievalResult], comprehensive: bool = False) -> str:
    """Wrap retrieved context and the question in the answering instructions.

    Args:
        question: User question, inserted verbatim.
        results: Retrieved chunks, most similar first; order is preserved.
        comprehensive: Adds the whole-document synthesis block when True.

    Returns:
        The complete prompt text for the chat model.
    """
    sections = [BASE_INSTRUCTIONS]
    if comprehensive:
        sections.append(COMPREHENSIVE_INSTRUCTIONS)
    sections.append(RULES)
    sections.append(
        f"Context retrieved from the PDF ({len(results)} chunks from multiple pages):\n"
        f"{build_context(results)}\n\n"
        f"Question:\n{question}\n\n"
        "Your Answer (strictly based on the context above):\n"
    )
    return "\n".join(sections)


class OpenAIChatModel:
    """Chat service backed by the OpenAI Responses API."""

    def __init__(self, client: OpenAI, model_name: str = "gpt-4.1-mini", temperature: float = 0.7) -> None:
        self.client = client
        self.model_name = model_name
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: OpenAISettings) -> "OpenAIChatModel":
        return cls(
            client=build_openai_client(settings),
            model_name=settings.chat_model,
            temperature=settings.temperature,
        )

    def complete(self, prompt: str) -> str:
        response = self.client.responses.create(model=self.model_name, input=prompt, temperature=self.temperature)
        return response.output_text
