"""Turn questions and missing-information statements into lookup topics."""

from __future__ import annotations

import re

_QUESTION_WORD = re.compile(
    r"^(what|who|where|when|why|how|is|are|was|were|do|does|did|can|could|would|should)\s+",
    re.IGNORECASE,
)
_BOILERPLATE = re.compile(
    r"^(definition|explanation|details|clarification|information|data)\s+(of|on|about|for)\s+",
    re.IGNORECASE,
)
_ARTICLE = re.compile(r"^the\s+", re.IGNORECASE)


def topic_from_question(question: str) -> str:
    """``"What is TypeScript?"`` → ``"typescript"``."""
    topic = _QUESTION_WORD.sub("", question.lower(), count=1).replace("?", "").strip()
    if topic.startswith("is "):
        topic = topic[3:].strip()
    return topic or question


def topics_from_missing_info(
    missing_info: list[str],
    fallback_question: str,
    *,
    limit: int = 3,
) -> list[str]:
    """Lower-cased, de-duplicated topics with boilerplate prefixes stripped.

    Falls back to the question's topic when there is nothing usable.
    """
    topics: list[str] = []
    for m in missing_info:
        cleaned = _BOILERPLATE.sub("", m.lower().strip(), count=1)
        cleaned = _ARTICLE.sub("", cleaned, count=1).strip()
        cleaned = cleaned or m.lower().strip()
        if cleaned:
            topics.append(cleaned)

    if not topics:
        return [topic_from_question(fallback_question)]
    return list(dict.fromkeys(topics))[:limit]
