"""Thin LiteLLM wrapper — two async functions, no classes.

Model strings come from the LLM profile passed in, or the active profile
when none is given.
"""

from __future__ import annotations

import logging

import litellm

from sage.config import LLMProfile, get_settings

log = logging.getLogger(__name__)


async def complete(
    messages: list[dict],
    *,
    profile: LLMProfile | None = None,
    model: str | None = None,
    **kwargs,
) -> str:
    """Chat completion using the profile's chat_model."""
    cfg = profile or get_settings().llm
    model = model or cfg.chat_model
    temperature = kwargs.pop("temperature", cfg.temperature)
    max_tokens = kwargs.pop("max_tokens", cfg.max_tokens)

    response = await litellm.acompletion(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        **kwargs,
    )
    return response.choices[0].message.content or ""


async def embed(
    texts: list[str],
    *,
    profile: LLMProfile | None = None,
    model: str | None = None,
    batch_size: int = 128,
) -> list[list[float]]:
    """Embed texts using the profile's embed_model, one vector per text, in order.

    Automatically batches large inputs to stay within API limits.
    """
    if not texts:
        return []

    cfg = profile or get_settings().llm
    model = model or cfg.embed_model

    if len(texts) <= batch_size:
        response = await litellm.aembedding(model=model, input=texts)
        return [item["embedding"] for item in response.data]

    # Batch large inputs
    all_embeddings: list[list[float]] = []
    total_batches = -(-len(texts) // batch_size)  # ceil division
    for i in range(0, len(texts), batch_size):
        batch = texts[i : i + batch_size]
        batch_num = i // batch_size + 1
        log.info("Embedding batch %d/%d (%d texts)", batch_num, total_batches, len(batch))
        response = await litellm.aembedding(model=model, input=batch)
        all_embeddings.extend(item["embedding"] for item in response.data)
    return all_embeddings
