import pytest

pytest.importorskip("langchain_openai")

from framechunk.embeddings.providers import EmbeddingProviderFactory  # noqa: E402
from framechunk.settings import AppSettings  # noqa: E402


def test_factory_creates_openai_embeddings() -> None:
    from langchain_openai import OpenAIEmbeddings  # type: ignore

    settings = AppSettings(embedding_api_key="test-key", embedding_model="text-embedding-3-small")
    embeddings = EmbeddingProviderFactory.create(settings)

    assert isinstance(embeddings, OpenAIEmbeddings)
    assert embeddings.model == "text-embedding-3-small"


def test_local_provider_disables_tiktoken() -> None:
    settings = AppSettings(
        embedding_provider="lmstudio",
        embedding_api_base="http://localhost:1234/v1",
        embedding_api_key="lm-studio",
        embedding_model="nomic-embed-text",
    )
    embeddings = EmbeddingProviderFactory.create(settings)

    assert embeddings.tiktoken_enabled is False


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(NotImplementedError):
        EmbeddingProviderFactory.create(AppSettings(), provider="carrier-pigeon")
