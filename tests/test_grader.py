"""Tests for sage.query.grader and sage.query.replies."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from sage.models import RetrievedChunk
from sage.query.grader import NO_CONTEXT_MESSAGE, UNGRADEABLE_MESSAGE, assess_completeness, parse_grade
from sage.query.replies import load_json_reply


@pytest.fixture
def chunks():
    return [
        RetrievedChunk(chunk_id="c1", document_id="d1", text="A" * 1000, distance=0.1),
        RetrievedChunk(chunk_id="c2", document_id="d1", text="Refunds take 30 days.", distance=0.2),
    ]


@pytest.fixture
def mock_complete():
    with patch("sage.llm.complete", new_callable=AsyncMock) as mock:
        yield mock


def test_load_json_reply_handles_fences():
    assert load_json_reply('```json\n{"a": 1}\n```') == {"a": 1}
    assert load_json_reply('  {"a": 2} ') == {"a": 2}
    assert load_json_reply("not json") is None
    assert load_json_reply("") is None


def test_parse_grade_requires_both_keys():
    assert parse_grade('{"confidence": 0.7}') is None
    assert parse_grade('{"missing_info": []}') is None
    grade = parse_grade('{"confidence": 0.7, "missing_info": ["dates"]}')
    assert grade.confidence == 0.7
    assert grade.missing_info == ["dates"]


def test_parse_grade_rejects_out_of_range():
    assert parse_grade('{"confidence": 1.5, "missing_info": []}') is None
    assert parse_grade('{"confidence": "high", "missing_info": []}') is None
    assert parse_grade("[0.5]") is None


@pytest.mark.asyncio
async def test_no_evidence_makes_no_call(mock_complete):
    grade = await assess_completeness("q?", "answer", [])
    assert grade.confidence == 0.05
    assert grade.missing_info == [NO_CONTEXT_MESSAGE]
    mock_complete.assert_not_called()


@pytest.mark.asyncio
async def test_grades_with_truncated_context(chunks, mock_complete):
    mock_complete.return_value = '{"confidence": 0.9, "missing_info": []}'

    grade = await assess_completeness("How long do refunds take?", "30 days", chunks)

    assert grade.confidence == 0.9
    assert grade.missing_info == []
    prompt = mock_complete.call_args.args[0][0]["content"]
    assert "A" * 600 in prompt
    assert "A" * 601 not in prompt
    assert "Refunds take 30 days." in prompt
    assert mock_complete.call_args.kwargs["temperature"] == 0.0


@pytest.mark.asyncio
async def test_grading_uses_chunks_only(chunks, mock_complete):
    mock_complete.return_value = '{"confidence": 0.8, "missing_info": []}'

    await assess_completeness("q?", "a", chunks)

    prompt = mock_complete.call_args.args[0][0]["content"]
    assert "Refunds take 30 days." in prompt
    assert "EXTERNAL" not in prompt


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["I think it is fine", '{"confidence": 0.9}', '{"confidence": 7, "missing_info": []}'])
async def test_unparseable_grade_degrades(chunks, mock_complete, reply):
    mock_complete.return_value = reply
    grade = await assess_completeness("q?", "a", chunks)
    assert grade.confidence == 0.4
    assert grade.missing_info == [UNGRADEABLE_MESSAGE]
