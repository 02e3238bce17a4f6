"""Answer generation from document chunks and external snippets."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from sage import llm
from sage.config import LLMProfile, PromptsConfig
from sage.models import ExternalSnippet, RetrievedChunk
from sage.query.replies import load_json_reply

CONTEXT_SEPARATOR = "\n\n---\n\n"


class AnswerShape(BaseModel):
    """The JSON object the answer prompt asks for."""

    answer: str
    citations: list[Any] = []


class GeneratedAnswer(BaseModel):
    """Generation result: ``parsed`` is set only when the reply had the expected shape."""

    raw: str
    parsed: AnswerShape | None = None

    @property
    def answer_text(self) -> str:
        return self.parsed.answer if self.parsed is not None else self.raw

    @property
    def citations(self) -> list[Any]:
        return self.parsed.citations if self.parsed is not None else []


def parse_answer(raw: str) -> GeneratedAnswer:
    data = load_json_reply(raw)
    if not isinstance(data, dict):
        return GeneratedAnswer(raw=raw)

    answer = data.get("answer")
    citations = data.get("citations")
    return GeneratedAnswer(
        raw=raw,
        parsed=AnswerShape(
            answer=raw if answer is None else str(answer),
            citations=citations if isinstance(citations, list) else [],
        ),
    )


def format_doc_context(chunks: list[RetrievedChunk]) -> str:
    return CONTEXT_SEPARATOR.join(
        f"DOC_CHUNK {c.chunk_id} (doc {c.document_id}):\n{c.text}" for c in chunks
    )


def format_external_context(snippets: list[ExternalSnippet]) -> str:
    return CONTEXT_SEPARATOR.join(
        f"EXTERNAL {s.id} ({s.title}) {s.url}:\n{s.text}" for s in snippets
    )


async def generate_answer(
    question: str,
    chunks: list[RetrievedChunk],
    external: list[ExternalSnippet] | None = None,
    *,
    prompts: PromptsConfig | None = None,
    profile: LLMProfile | None = None,
) -> GeneratedAnswer:
    """Ask the completion service for a cited JSON answer.

    A reply that is not JSON is kept as the answer text, with no citations.
    """
    prompts = prompts or PromptsConfig()
    prompt = prompts.answer_prompt.format(
        question=question,
        doc_context=format_doc_context(chunks) or "(none)",
        ext_context=format_external_context(external or []) or "(none)",
    )
    raw = await llm.complete(
        [{"role": "user", "content": prompt}],
        profile=profile,
        temperature=0.2,
    )
    return parse_answer(raw)
