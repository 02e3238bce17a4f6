"""Completeness grader — does the context actually support the answer?"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from sage import llm
from sage.config import LLMProfile, PromptsConfig, QueryConfig
from sage.models import Grade, RetrievedChunk
from sage.query.replies import load_json_reply

log = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = "No relevant documents were retrieved for this question."
UNGRADEABLE_MESSAGE = "Completeness grading was uncertain due to formatting issues."


def parse_grade(raw: str) -> Grade | None:
    """Parse a ``{confidence, missing_info}`` reply, or None if it doesn't fit."""
    data = load_json_reply(raw)
    if not isinstance(data, dict) or not {"confidence", "missing_info"} <= data.keys():
        return None
    try:
        return Grade.model_validate(data)
    except ValidationError:
        return None


async def assess_completeness(
    question: str,
    answer: str,
    chunks: list[RetrievedChunk],
    *,
    query: QueryConfig | None = None,
    prompts: PromptsConfig | None = None,
    profile: LLMProfile | None = None,
) -> Grade:
    """Grade *answer* against the retrieved *chunks*.

    Without chunks there is nothing to grade against and no model call is
    made. A reply that does not parse degrades to a middling confidence
    instead of failing the query.
    """
    query = query or QueryConfig()
    prompts = prompts or PromptsConfig()

    if not chunks:
        return Grade(confidence=query.no_answer_confidence, missing_info=[NO_CONTEXT_MESSAGE])

    context = "\n---\n".join(c.text[: query.grading_snippet_chars] for c in chunks)
    prompt = prompts.grading_prompt.format(question=question, answer=answer, context=context)

    raw = await llm.complete(
        [{"role": "user", "content": prompt}],
        profile=profile,
        temperature=0.0,
    )
    grade = parse_grade(raw)
    if grade is None:
        log.warning("Could not parse completeness grade: %.200r", raw)
        return Grade(confidence=query.ungradeable_confidence, missing_info=[UNGRADEABLE_MESSAGE])
    return grade
