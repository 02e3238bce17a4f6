"""Pydantic Settings with YAML profile support.

Priority (highest first): env vars > .env > config.yaml > config.default.yaml

Every section model is frozen: components receive the section they need at
construction time and never read settings ad hoc.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, YamlConfigSettingsSource


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------

class LLMProfile(BaseModel):
    """One named LLM configuration profile."""

    model_config = ConfigDict(frozen=True)

    chat_model: str = "openai/gpt-4o-mini"
    embed_model: str = "openai/text-embedding-3-small"
    embed_dim: int = 1536
    temperature: float = 0.2
    max_tokens: int = 2048


class QdrantConfig(BaseModel):
    """Embedded mode uses ``path``. Set ``url`` to use a Qdrant server, which
    is required once more than one worker process shares the index."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    path: str = "./data/qdrant"
    collection: str = "sage_chunks"


class DocstoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str = "./data/docstore.db"


class StorageConfig(BaseModel):
    """Where uploaded bytes and extracted text are kept."""

    model_config = ConfigDict(frozen=True)

    dir: str = "./data/storage"


class ChunkerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_size: int = 1200
    chunk_overlap: int = 200


class OCRConfig(BaseModel):
    """Scanned-PDF fallback. OCR runs only when direct extraction yields
    fewer than ``min_text_chars`` characters."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    dpi: int = 200
    max_pages: int = 15
    min_text_chars: int = 400
    language: str = "eng"


class EnrichConfig(BaseModel):
    """Trusted external enrichment."""

    model_config = ConfigDict(frozen=True)

    trusted_domains: str = "en.wikipedia.org"
    max_snippets: int = 3
    summary_url: str = "https://en.wikipedia.org/api/rest_v1/page/summary/{topic}"
    timeout: float = 10.0

    @property
    def allow_list(self) -> list[str]:
        return [d.strip() for d in self.trusted_domains.split(",") if d.strip()]


class QueryConfig(BaseModel):
    """Retrieval defaults and answer-grading policy constants."""

    model_config = ConfigDict(frozen=True)

    top_k: int = 6
    enrich_threshold: float = 0.55
    external_confidence_cap: float = 0.6
    no_answer_confidence: float = 0.05
    ungradeable_confidence: float = 0.4
    grading_snippet_chars: int = 600
    excerpt_max_chars: int = 220
    max_topics: int = 3


class QueueConfig(BaseModel):
    """Celery broker and ingestion retry policy."""

    model_config = ConfigDict(frozen=True)

    broker_url: str = "redis://localhost:6379/0"
    result_backend: str = "redis://localhost:6379/1"
    queue_name: str = "ingestion"
    concurrency: int = 2
    max_attempts: int = 3
    backoff_seconds: float = 1.5
    backoff_max_seconds: int = 600
    eager: bool = False


class PromptsConfig(BaseModel):
    """Prompts used by the query pipeline."""

    model_config = ConfigDict(frozen=True)

    answer_prompt: str = (
        "You are a knowledge base assistant.\n\n"
        "Answer using the uploaded documents first. You may use EXTERNAL snippets "
        "only to fill gaps.\n"
        "If you use external info, clearly indicate it and cite it.\n\n"
        "Return JSON exactly:\n"
        "{{\n"
        '  "answer": string,\n'
        '  "citations": [\n'
        "    {{\n"
        '      "source_type": "doc_chunk" | "external",\n'
        '      "chunk_id"?: string,\n'
        '      "document_id"?: string,\n'
        '      "url"?: string,\n'
        '      "title"?: string,\n'
        '      "excerpt": string\n'
        "    }}\n"
        "  ]\n"
        "}}\n\n"
        "Rules:\n"
        "- Every major claim must have a citation.\n"
        "- Excerpt max 200 chars, copied from the source text.\n"
        "- If insufficient info even after external snippets, say what is missing.\n\n"
        "QUESTION:\n{question}\n\n"
        "DOCUMENT CHUNKS:\n{doc_context}\n\n"
        "EXTERNAL SNIPPETS:\n{ext_context}"
    )
    grading_prompt: str = (
        "You are grading whether an answer is fully supported by retrieved documents.\n\n"
        "Output JSON:\n"
        "{{\n"
        '  "confidence": number (0 to 1),\n'
        '  "missing_info": string[]\n'
        "}}\n\n"
        "Be conservative: if context does not clearly support the answer, reduce "
        "confidence and list missing_info.\n\n"
        "QUESTION:\n{question}\n\n"
        "ANSWER:\n{answer}\n\n"
        "CONTEXT SNIPPETS:\n{context}"
    )


# ---------------------------------------------------------------------------
# Main settings
# ---------------------------------------------------------------------------

def _yaml_files() -> list[Path]:
    """Return YAML config file paths relative to the project root."""
    root = Path(os.environ.get("SAGE_ROOT", "."))
    files = [root / "config.default.yaml"]
    user_cfg = root / "config.yaml"
    if user_cfg.exists():
        files.append(user_cfg)
    return files


class Settings(BaseSettings):
    """Application settings loaded from YAML + env vars."""

    model_config = SettingsConfigDict(
        env_prefix="SAGE_",
        env_nested_delimiter="__",
        frozen=True,
    )

    active_profile: str = "default"
    profiles: dict[str, LLMProfile] = {}
    qdrant: QdrantConfig = QdrantConfig()
    docstore: DocstoreConfig = DocstoreConfig()
    storage: StorageConfig = StorageConfig()
    chunker: ChunkerConfig = ChunkerConfig()
    ocr: OCRConfig = OCRConfig()
    enrich: EnrichConfig = EnrichConfig()
    query: QueryConfig = QueryConfig()
    queue: QueueConfig = QueueConfig()
    prompts: PromptsConfig = PromptsConfig()

    @field_validator("chunker")
    @classmethod
    def _check_overlap(cls, v: ChunkerConfig) -> ChunkerConfig:
        if v.chunk_overlap >= v.chunk_size:
            raise ValueError(
                f"chunker.chunk_overlap ({v.chunk_overlap}) must be smaller than "
                f"chunker.chunk_size ({v.chunk_size})"
            )
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(
                settings_cls,
                yaml_file=_yaml_files(),
            ),
        )

    @property
    def llm(self) -> LLMProfile:
        """Return the currently active LLM profile."""
        if self.active_profile not in self.profiles:
            available = ", ".join(self.profiles.keys()) or "(none)"
            raise KeyError(
                f"Profile '{self.active_profile}' not found. Available: {available}"
            )
        return self.profiles[self.active_profile]


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings(**kwargs: Any) -> Settings:
    """Lazy singleton for settings. Call reset_settings() to reload."""
    root = Path(os.environ.get("SAGE_ROOT", "."))
    load_dotenv(root / ".env", override=False)
    return Settings(**kwargs)


def reset_settings() -> None:
    """Clear the settings cache so the next get_settings() reloads from disk."""
    get_settings.cache_clear()
