"""Tests for sage.llm — mocked LiteLLM calls."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sage.config import LLMProfile
from sage.llm import complete, embed


@pytest.fixture
def mock_completion():
    """Mock litellm.acompletion to return a fake response."""
    choice = MagicMock()
    choice.message.content = "Hello from mock"
    response = MagicMock()
    response.choices = [choice]

    with patch("sage.llm.litellm.acompletion", new_callable=AsyncMock) as mock:
        mock.return_value = response
        yield mock


@pytest.fixture
def mock_embedding():
    """Mock litellm.aembedding to return one fake vector per input."""

    async def _fake(model, input):
        response = MagicMock()
        response.data = [{"embedding": [float(i), 0.5, 0.25]} for i in range(len(input))]
        return response

    with patch("sage.llm.litellm.aembedding", new_callable=AsyncMock) as mock:
        mock.side_effect = _fake
        yield mock


@pytest.mark.asyncio
async def test_complete_uses_config_model(mock_completion):
    result = await complete([{"role": "user", "content": "hi"}])
    assert result == "Hello from mock"

    call_kwargs = mock_completion.call_args
    assert call_kwargs.kwargs["model"] == "openai/gpt-4o-mini"
    assert call_kwargs.kwargs["temperature"] == 0.2


@pytest.mark.asyncio
async def test_complete_allows_overrides(mock_completion):
    await complete(
        [{"role": "user", "content": "hi"}],
        model="anthropic/claude-3-5-haiku",
        temperature=0.0,
    )

    call_kwargs = mock_completion.call_args
    assert call_kwargs.kwargs["model"] == "anthropic/claude-3-5-haiku"
    assert call_kwargs.kwargs["temperature"] == 0.0


@pytest.mark.asyncio
async def test_complete_uses_given_profile(mock_completion):
    profile = LLMProfile(chat_model="ollama/llama3.1", max_tokens=64)
    await complete([{"role": "user", "content": "hi"}], profile=profile)

    call_kwargs = mock_completion.call_args
    assert call_kwargs.kwargs["model"] == "ollama/llama3.1"
    assert call_kwargs.kwargs["max_tokens"] == 64


@pytest.mark.asyncio
async def test_complete_empty_content_is_empty_string(mock_completion):
    mock_completion.return_value.choices[0].message.content = None
    assert await complete([{"role": "user", "content": "hi"}]) == ""


@pytest.mark.asyncio
async def test_embed_returns_vectors(mock_embedding):
    vectors = await embed(["hello", "world"])
    assert len(vectors) == 2
    assert len(vectors[0]) == 3

    call_kwargs = mock_embedding.call_args
    assert call_kwargs.kwargs["model"] == "openai/text-embedding-3-small"


@pytest.mark.asyncio
async def test_embed_empty_input_makes_no_call(mock_embedding):
    assert await embed([]) == []
    mock_embedding.assert_not_called()


@pytest.mark.asyncio
async def test_embed_batches_and_preserves_order(mock_embedding):
    vectors = await embed([f"t{i}" for i in range(5)], batch_size=2)
    assert len(vectors) == 5
    assert mock_embedding.call_count == 3
    # Each batch numbers its own vectors from zero.
    assert [v[0] for v in vectors] == [0.0, 1.0, 0.0, 1.0, 0.0]
