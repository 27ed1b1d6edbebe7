"""
Embedding clients for the vector-store collaborator.

Providers are LangChain embedding wrappers selected by configuration, so a
local OpenAI-compatible server can stand in for the hosted API.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.embeddings import Embeddings

from ..logger import get_logger
from ..settings import AppSettings

log = get_logger(__name__)

OPENAI_COMPATIBLE = frozenset({"openai", "lmstudio", "ollama"})


@dataclass
class EmbeddingPayload:
    """A chunk's text, vector and metadata ready for upsert."""

    id: str
    text: str
    vector: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


class EmbeddingProviderFactory:
    """Returns an embeddings client for the configured provider."""

    @staticmethod
    def create(app_settings: AppSettings, provider: Optional[str] = None, model: Optional[str] = None) -> Embeddings:
        provider_name = (provider or app_settings.embedding_provider).lower()

        if provider_name in OPENAI_COMPATIBLE:
            from langchain_openai import OpenAIEmbeddings  # type: ignore

            embed_model = model or app_settings.embedding_model
            log.info("initializing_openai_embeddings", provider=provider_name, model=embed_model)
            kwargs: Dict[str, Any] = {
                "model": embed_model,
                "encoding_format": "float",
            }
            if app_settings.embedding_api_base:
                kwargs["base_url"] = app_settings.embedding_api_base
            if app_settings.embedding_api_key:
                kwargs["api_key"] = app_settings.embedding_api_key
            if provider_name != "openai":
                # Local servers do not accept pre-tokenised input.
                kwargs["tiktoken_enabled"] = False
                kwargs["check_embedding_ctx_length"] = False
            return OpenAIEmbeddings(**kwargs)

        raise NotImplementedError(f"Embedding provider not yet supported: {provider_name}")
