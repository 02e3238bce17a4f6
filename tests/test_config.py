"""Tests for sage.config."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sage.config import (
    EnrichConfig,
    OCRConfig,
    PromptsConfig,
    QueryConfig,
    Settings,
    get_settings,
    reset_settings,
)


def test_settings_loads_default_yaml():
    """config.default.yaml should load into Settings without error."""
    settings = get_settings()
    assert settings.active_profile == "default"
    assert "default" in settings.profiles


def test_active_profile_resolves():
    profile = get_settings().llm
    assert profile.chat_model == "openai/gpt-4o-mini"
    assert profile.embed_model == "openai/text-embedding-3-small"
    assert profile.embed_dim == 1536


def test_missing_profile_raises(monkeypatch):
    """Requesting a non-existent profile should raise KeyError."""
    monkeypatch.setenv("SAGE_ACTIVE_PROFILE", "nonexistent")
    reset_settings()
    settings = get_settings()
    with pytest.raises(KeyError, match="nonexistent"):
        _ = settings.llm


def test_env_var_override_profile(monkeypatch):
    monkeypatch.setenv("SAGE_ACTIVE_PROFILE", "local")
    reset_settings()
    settings = get_settings()
    assert settings.active_profile == "local"
    assert settings.llm.chat_model.startswith("ollama/")


def test_data_paths_follow_env(tmp_path):
    settings = get_settings()
    assert settings.docstore.path == str(tmp_path / "docstore.db")
    assert settings.qdrant.path == str(tmp_path / "qdrant")
    assert settings.storage.dir == str(tmp_path / "storage")


def test_nested_env_overrides(monkeypatch):
    monkeypatch.setenv("SAGE_OCR__ENABLED", "false")
    monkeypatch.setenv("SAGE_OCR__MIN_TEXT_CHARS", "50")
    monkeypatch.setenv("SAGE_ENRICH__MAX_SNIPPETS", "1")
    reset_settings()
    settings = get_settings()
    assert settings.ocr.enabled is False
    assert settings.ocr.min_text_chars == 50
    assert settings.enrich.max_snippets == 1


def test_policy_defaults():
    settings = get_settings()
    assert settings.query.top_k == 6
    assert settings.query.enrich_threshold == 0.55
    assert settings.query.external_confidence_cap == 0.6
    assert settings.queue.max_attempts == 3
    assert settings.queue.backoff_seconds == 1.5


def test_ocr_defaults():
    cfg = OCRConfig()
    assert cfg.enabled is True
    assert cfg.dpi == 200
    assert cfg.max_pages == 15
    assert cfg.min_text_chars == 400


def test_query_config_constants():
    cfg = QueryConfig()
    assert cfg.no_answer_confidence == 0.05
    assert cfg.ungradeable_confidence == 0.4
    assert cfg.excerpt_max_chars == 220


def test_allow_list_splits_and_trims():
    cfg = EnrichConfig(trusted_domains=" en.wikipedia.org , britannica.com,,")
    assert cfg.allow_list == ["en.wikipedia.org", "britannica.com"]


def test_sections_are_frozen():
    cfg = OCRConfig()
    with pytest.raises(ValidationError):
        cfg.dpi = 300


def test_overlap_must_be_smaller_than_chunk_size():
    with pytest.raises(ValidationError, match="chunk_overlap"):
        Settings(chunker={"chunk_size": 100, "chunk_overlap": 100})


def test_prompts_have_placeholders():
    cfg = PromptsConfig()
    rendered = cfg.answer_prompt.format(question="Q?", doc_context="D", ext_context="E")
    assert "QUESTION:\nQ?" in rendered
    assert '"source_type"' in rendered
    graded = cfg.grading_prompt.format(question="Q?", answer="A", context="C")
    assert '"missing_info"' in graded
