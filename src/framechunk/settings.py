"""
Run configuration.

Settings come from ``FRAMECHUNK_*`` environment variables, optionally seeded
from a grouped TOML file. Each call to :func:`load_settings` builds a new
object; the chunking core only ever sees the :class:`ChunkingContext` derived
from it.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - fallback for older interpreters
    import tomli as tomllib  # type: ignore[no-redef]

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FILE_TYPES: List[str] = ["ts", "tsx", "js", "jsx", "mjs", "cjs", "svelte", "md", "txt"]


class AppSettings(BaseSettings):
    """Project-wide settings loaded from env or a TOML file."""

    model_config = SettingsConfigDict(
        env_prefix="FRAMECHUNK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    construct_budget_tokens: float = 1500
    template_budget_tokens: float = 1500
    knowledge_budget_tokens: float = 1000
    min_text_tokens: float = 5
    include_plain_variables: bool = False
    supported_file_types: List[str] = DEFAULT_FILE_TYPES
    ignore_patterns: List[str] = []
    max_workers: int = 1
    output_dir: Path = Path("./chunks")
    upsert_batch_size: int = 2000
    upsert_pause_seconds: float = 1.0
    milvus_uri: str = "http://localhost:19530"
    milvus_username: Optional[str] = None
    milvus_password: Optional[str] = None
    milvus_collection: str = "code_chunks"
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    embedding_api_base: Optional[str] = None
    embedding_api_key: Optional[str] = None
    embedding_batch_size: int = 100

    @field_validator(
        "construct_budget_tokens",
        "template_budget_tokens",
        "knowledge_budget_tokens",
    )
    @classmethod
    def _positive_budget(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("token budgets must be positive")
        return value

    @field_validator("upsert_batch_size", "max_workers", "embedding_batch_size")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, value)


@dataclass(frozen=True)
class ChunkingContext:
    """Immutable per-run chunking parameters handed to every parser."""

    construct_budget: float = 1500
    template_budget: float = 1500
    knowledge_budget: float = 1000
    min_text_tokens: float = 5
    include_plain_variables: bool = False
    supported_extensions: Tuple[str, ...] = tuple(f".{ext}" for ext in DEFAULT_FILE_TYPES)

    @classmethod
    def from_settings(cls, app_settings: AppSettings) -> "ChunkingContext":
        return cls(
            construct_budget=app_settings.construct_budget_tokens,
            template_budget=app_settings.template_budget_tokens,
            knowledge_budget=app_settings.knowledge_budget_tokens,
            min_text_tokens=app_settings.min_text_tokens,
            include_plain_variables=app_settings.include_plain_variables,
            supported_extensions=tuple(
                f".{ext.lstrip('.').lower()}" for ext in app_settings.supported_file_types
            ),
        )


_CONFIG_ENV_VAR = "FRAMECHUNK_CONFIG_PATH"
_DEFAULT_CONFIG_FILE = Path("framechunk_settings.toml")


def _load_toml_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from the first TOML file found on disk."""
    candidates: List[Path] = []
    if config_path is not None:
        candidates.append(config_path)
    config_override = os.getenv(_CONFIG_ENV_VAR)
    if config_override:
        candidates.append(Path(config_override))
    candidates.append(_DEFAULT_CONFIG_FILE)

    for candidate in candidates:
        if candidate.is_file():
            with candidate.open("rb") as handle:
                return tomllib.load(handle)
    return {}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


_SECTION_KEYS: Dict[str, Dict[str, str]] = {
    "chunking": {
        "construct_budget": "construct_budget_tokens",
        "template_budget": "template_budget_tokens",
        "knowledge_budget": "knowledge_budget_tokens",
        "min_text_tokens": "min_text_tokens",
        "include_plain_variables": "include_plain_variables",
    },
    "scan": {
        "supported_file_types": "supported_file_types",
        "ignore": "ignore_patterns",
        "max_workers": "max_workers",
    },
    "output": {
        "dir": "output_dir",
        "batch_size": "upsert_batch_size",
        "pause_seconds": "upsert_pause_seconds",
    },
    "milvus": {
        "uri": "milvus_uri",
        "username": "milvus_username",
        "password": "milvus_password",
        "collection": "milvus_collection",
    },
    "embedding": {
        "provider": "embedding_provider",
        "model": "embedding_model",
        "dimension": "embedding_dimension",
        "api_base": "embedding_api_base",
        "api_key": "embedding_api_key",
        "batch_size": "embedding_batch_size",
    },
}


def _flatten_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Translate grouped TOML sections into AppSettings keyword arguments."""
    data: Dict[str, Any] = {}
    for section_name, keys in _SECTION_KEYS.items():
        section = raw.get(section_name, {})
        for key, field_name in keys.items():
            if key in section:
                data[field_name] = _blank_to_none(section[key])
    return data


def load_settings(config_path: Optional[Path] = None) -> AppSettings:
    """
    Build settings from TOML defaults overlaid with environment variables.

    Environment variables win over the file, matching the precedence used
    by deployment scripts.
    """
    flattened = _flatten_config(_load_toml_config(config_path))
    env_overrides = AppSettings().model_dump(exclude_unset=True)
    flattened.update(env_overrides)
    return AppSettings(**flattened)
