"""
Tests for embedding adapters: deterministic fallback, resilient wrapper and HTTP providers.
"""

import math
from unittest.mock import Mock, patch

import pytest
import requests

from notes_rag.domain.errors import UpstreamUnavailable, ValidationError
from notes_rag.domain.models import ChatMessage, Vector
from notes_rag.domain.similarity import cosine_similarity
from notes_rag.infrastructure.fallback.embedding import MODEL_NAME, HashEmbeddingService, hash_embedding
from notes_rag.infrastructure.ollama.client import OllamaEmbeddingService, OllamaTextGenerator
from notes_rag.infrastructure.openai_compat.client import OpenAICompatEmbeddingService, OpenAICompatTextGenerator
from notes_rag.infrastructure.resilient import ResilientEmbeddingService


@pytest.mark.unit
class TestHashEmbedding:
    def test_deterministic(self):
        assert hash_embedding("Buy milk and eggs", 64) == hash_embedding("Buy milk and eggs", 64)

    def test_unit_length_and_dimension(self):
        v = hash_embedding("Quarterly finance report", 128)
        assert len(v) == 128
        assert math.isclose(math.sqrt(sum(x * x for x in v)), 1.0, rel_tol=1e-9)

    def test_empty_text_is_zero_vector(self):
        assert hash_embedding("", 16) == [0.0] * 16

    def test_shared_words_are_closer(self):
        base = hash_embedding("buy milk and eggs", 256)
        near = hash_embedding("buy milk", 256)
        far = hash_embedding("quarterly finance report", 256)
        assert cosine_similarity(base, near) > cosine_similarity(base, far)

    def test_service(self):
        svc = HashEmbeddingService(32)
        vec = svc.embed_text("hello world")
        assert vec.dim == 32
        assert vec.model == MODEL_NAME
        assert svc.get_dimension() == 32


@pytest.mark.unit
class TestResilientEmbedding:
    def test_uses_primary_when_healthy(self):
        primary = Mock()
        primary.embed_text.return_value = Vector(values=[0.1, 0.2], dim=2, model="p")
        svc = ResilientEmbeddingService(primary, HashEmbeddingService(8))

        assert svc.embed_text("text").model == "p"

    def test_falls_back_on_upstream_failure(self):
        primary = Mock()
        primary.embed_text.side_effect = UpstreamUnavailable("timeout")
        primary.model_name.return_value = "p"
        svc = ResilientEmbeddingService(primary, HashEmbeddingService(8))

        vec = svc.embed_text("text")

        assert vec.model == MODEL_NAME
        assert vec.values == hash_embedding("text", 8)

    def test_truncates_before_embedding(self):
        primary = Mock()
        primary.embed_text.return_value = Vector(values=[1.0], dim=1)
        svc = ResilientEmbeddingService(primary, HashEmbeddingService(8), max_chars=5)

        svc.embed_text("abcdefghij")

        primary.embed_text.assert_called_once_with("abcde")

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_rejects_empty_text(self, text):
        svc = ResilientEmbeddingService(None, HashEmbeddingService(8))
        with pytest.raises(ValidationError):
            svc.embed_text(text)

    def test_fallback_only(self):
        svc = ResilientEmbeddingService(None, HashEmbeddingService(8))
        assert svc.model_name() == MODEL_NAME
        assert svc.get_dimension() == 8


@pytest.mark.unit
class TestOllamaAdapters:
    @patch("notes_rag.infrastructure.ollama.client.requests.post")
    def test_embed(self, mock_post):
        mock_post.return_value = Mock(status_code=200, json=Mock(return_value={"embedding": [0.5, 0.25]}))
        svc = OllamaEmbeddingService(base_url="http://ollama:11434/", model="mxbai-embed-large", timeout=3)

        vec = svc.embed_text("hello")

        assert vec.values == [0.5, 0.25]
        assert vec.model == "mxbai-embed-large"
        args, kwargs = mock_post.call_args
        assert args[0] == "http://ollama:11434/api/embeddings"
        assert kwargs["json"] == {"model": "mxbai-embed-large", "prompt": "hello"}
        assert kwargs["timeout"] == 3

    @patch("notes_rag.infrastructure.ollama.client.requests.post")
    def test_embed_timeout_raises_upstream(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")
        svc = OllamaEmbeddingService(base_url="http://ollama:11434", model="m", timeout=1)
        with pytest.raises(UpstreamUnavailable):
            svc.embed_text("hello")

    @patch("notes_rag.infrastructure.ollama.client.requests.post")
    def test_embed_malformed_payload(self, mock_post):
        mock_post.return_value = Mock(status_code=200, json=Mock(return_value={"nope": 1}))
        svc = OllamaEmbeddingService(base_url="http://ollama:11434", model="m", timeout=1)
        with pytest.raises(UpstreamUnavailable):
            svc.embed_text("hello")

    @patch("notes_rag.infrastructure.ollama.client.requests.post")
    def test_chat(self, mock_post):
        mock_post.return_value = Mock(
            status_code=200,
            json=Mock(return_value={"message": {"content": " answer "}, "prompt_eval_count": 10, "eval_count": 5}),
        )
        gen = OllamaTextGenerator(base_url="http://ollama:11434", model="llama3.1", timeout=5).generate(
            [ChatMessage("user", "hi")], temperature=0.2, max_tokens=64
        )

        assert gen.content == "answer"
        assert gen.tokens_used == 15
        body = mock_post.call_args.kwargs["json"]
        assert body["stream"] is False
        assert body["options"] == {"temperature": 0.2, "num_predict": 64}


@pytest.mark.unit
class TestOpenAICompatAdapters:
    @patch("notes_rag.infrastructure.openai_compat.client.requests.post")
    def test_embed(self, mock_post):
        mock_post.return_value = Mock(status_code=200, json=Mock(return_value={"data": [{"embedding": [1, 2, 3]}]}))
        svc = OpenAICompatEmbeddingService(base_url="https://api.example/v1", api_key="k", model="e5", timeout=2)

        vec = svc.embed_text("hello")

        assert vec.values == [1.0, 2.0, 3.0]
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.example/v1/embeddings"
        assert kwargs["headers"]["Authorization"] == "Bearer k"
        assert kwargs["json"]["input"] == ["hello"]

    def test_missing_key_is_upstream_failure(self, clean_environment, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        svc = OpenAICompatEmbeddingService(base_url="https://api.example/v1", api_key=None, model="e5", timeout=2)
        with pytest.raises(UpstreamUnavailable):
            svc.embed_text("hello")

    @patch("notes_rag.infrastructure.openai_compat.client.requests.post")
    def test_chat(self, mock_post):
        mock_post.return_value = Mock(
            status_code=200,
            json=Mock(return_value={"choices": [{"message": {"content": "ok"}}], "usage": {"total_tokens": 7}}),
        )
        gen = OpenAICompatTextGenerator(base_url="https://api.example/v1", api_key="k", model="m", timeout=2).generate(
            [ChatMessage("user", "hi")]
        )
        assert gen.content == "ok"
        assert gen.tokens_used == 7

    @patch("notes_rag.infrastructure.openai_compat.client.requests.post")
    def test_http_error(self, mock_post):
        resp = Mock()
        resp.raise_for_status.side_effect = requests.HTTPError("500")
        mock_post.return_value = resp
        gen = OpenAICompatTextGenerator(base_url="https://api.example/v1", api_key="k", model="m", timeout=2)
        with pytest.raises(UpstreamUnavailable):
            gen.generate([ChatMessage("user", "hi")])
