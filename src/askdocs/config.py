"""Process-wide configuration assembled once from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from askdocs.chunking import ChunkingConfig

LOGGER = logging.getLogger(__name__)

_SECRET_FIELDS = frozenset({"cohere_api_key", "tavily_api_key"})


def _str_from_env(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _optional_from_env(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _key_preview(value: str | None) -> str:
    return f"{value[:8]}..." if value else "NOT_SET"


@dataclass(slots=True)
class Settings:
    """Runtime settings shared by the service layer and the HTTP app."""

    environment: str = "development"
    data_dir: Path = field(default_factory=lambda: Path("data"))
    max_upload_bytes: int = 5 * 1024 * 1024

    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100

    embedding_backend: str = "hash"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimension: int = 384

    vector_store: str = "mock"
    chroma_persist_dir: Path = field(default_factory=lambda: Path("chroma_db"))
    collection_name: str = "askdocs_chunks"

    llm_backend: str = "mock"
    cohere_api_key: str | None = None
    cohere_api_base: str = "https://api.cohere.ai/v1"
    cohere_chat_model: str = "command-r"
    cohere_embed_model: str = "embed-english-v3.0"
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7

    tavily_api_key: str | None = None
    tavily_endpoint: str = "https://api.tavily.com/search"

    http_timeout: float = 30.0
    retrieval_top_k: int = 3

    log_level: str = "INFO"
    log_dir: Path = field(default_factory=lambda: Path("logs"))

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``env`` (defaults to :data:`os.environ`)."""

        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            environment=_str_from_env(env, "ENVIRONMENT", defaults.environment).lower(),
            data_dir=Path(_str_from_env(env, "ASKDOCS_DATA_DIR", str(defaults.data_dir))),
            max_upload_bytes=_int_from_env(env, "MAX_UPLOAD_BYTES", defaults.max_upload_bytes),
            chunk_size=_int_from_env(env, "CHUNK_SIZE", defaults.chunk_size),
            chunk_overlap=_int_from_env(env, "CHUNK_OVERLAP", defaults.chunk_overlap),
            min_chunk_size=_int_from_env(env, "MIN_CHUNK_SIZE", defaults.min_chunk_size),
            embedding_backend=_str_from_env(env, "EMBEDDING_BACKEND", defaults.embedding_backend).lower(),
            embedding_model=_str_from_env(env, "EMBEDDING_MODEL", defaults.embedding_model),
            embedding_dimension=_int_from_env(env, "EMBEDDING_DIMENSION", defaults.embedding_dimension),
            vector_store=_str_from_env(env, "VECTOR_STORE", defaults.vector_store).lower(),
            chroma_persist_dir=Path(
                _str_from_env(env, "CHROMA_PERSIST_DIR", str(defaults.chroma_persist_dir))
            ),
            collection_name=_str_from_env(env, "VECTOR_COLLECTION", defaults.collection_name),
            llm_backend=_str_from_env(env, "LLM_BACKEND", defaults.llm_backend).lower(),
            cohere_api_key=_optional_from_env(env, "COHERE_API_KEY"),
            cohere_api_base=_str_from_env(env, "COHERE_API_BASE", defaults.cohere_api_base).rstrip("/"),
            cohere_chat_model=_str_from_env(env, "COHERE_CHAT_MODEL", defaults.cohere_chat_model),
            cohere_embed_model=_str_from_env(env, "COHERE_EMBED_MODEL", defaults.cohere_embed_model),
            llm_max_tokens=_int_from_env(env, "LLM_MAX_TOKENS", defaults.llm_max_tokens),
            llm_temperature=_float_from_env(env, "LLM_TEMPERATURE", defaults.llm_temperature),
            tavily_api_key=_optional_from_env(env, "TAVILY_API_KEY"),
            tavily_endpoint=_str_from_env(env, "TAVILY_ENDPOINT", defaults.tavily_endpoint),
            http_timeout=_float_from_env(env, "HTTP_TIMEOUT", defaults.http_timeout),
            retrieval_top_k=_int_from_env(env, "RETRIEVAL_TOP_K", defaults.retrieval_top_k),
            log_level=_str_from_env(env, "LOG_LEVEL", defaults.log_level).upper(),
            log_dir=Path(_str_from_env(env, "LOG_DIR", str(defaults.log_dir))),
        )

    @property
    def is_production(self) -> bool:
        return self.environment in {"prod", "production"}

    def chunking_config(self) -> ChunkingConfig:
        return ChunkingConfig(
            chunk_size=self.chunk_size,
            overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
        )

    def describe(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the settings with secrets redacted."""

        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if item.name in _SECRET_FIELDS:
                payload[item.name] = _key_preview(value)
            elif isinstance(value, Path):
                payload[item.name] = str(value)
            else:
                payload[item.name] = value
        return payload


@lru_cache()
def get_settings() -> Settings:
    """Return the settings instance for this process."""

    return Settings.from_env()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
