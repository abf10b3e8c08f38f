from __future__ import annotations

from typing import List, Optional

import requests

from ...domain.errors import UpstreamUnavailable
from ...domain.interfaces import EmbeddingService, TextGenerator
from ...domain.models import ChatMessage, Generation, Vector
from ..config import embed_model, llm_max_tokens, llm_model, llm_temperature, ollama_url
from ..timeouts import embed_timeout_seconds, llm_timeout_seconds


class OllamaEmbeddingService(EmbeddingService):
    """Embedding adapter for Ollama /api/embeddings."""

    def __init__(self, base_url: Optional[str] = None, model: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self._base = (base_url or ollama_url()).rstrip("/")
        self._model = model or embed_model()
        self._timeout = timeout or embed_timeout_seconds()

    def model_name(self) -> str:
        return self._model

    def embed_text(self, text: str) -> Vector:
        url = f"{self._base}/api/embeddings"
        try:
            r = requests.post(url, json={"model": self._model, "prompt": text}, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
            values = [float(x) for x in data["embedding"]]
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"Ollama embedding request failed: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed Ollama embedding response: {exc}") from exc
        if not values:
            raise UpstreamUnavailable("Ollama returned an empty embedding")
        return Vector(values=values, dim=len(values), model=self._model)

    def get_dimension(self) -> int:
        return self.embed_text("dimension check").dim


class OllamaTextGenerator(TextGenerator):
    """Chat adapter for Ollama /api/chat (non-streaming)."""

    def __init__(self, base_url: Optional[str] = None, model: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self._base = (base_url or ollama_url()).rstrip("/")
        self._model = model or llm_model()
        self._timeout = timeout or llm_timeout_seconds()

    def generate(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Generation:
        body = {
            "model": self._model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": False,
            "options": {
                "temperature": llm_temperature() if temperature is None else temperature,
                "num_predict": max_tokens or llm_max_tokens(),
            },
        }
        try:
            r = requests.post(f"{self._base}/api/chat", json=body, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
            content = str(data["message"]["content"])
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"Ollama chat request failed: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed Ollama chat response: {exc}") from exc
        tokens = int(data.get("prompt_eval_count") or 0) + int(data.get("eval_count") or 0)
        return Generation(content=content.strip(), tokens_used=tokens)
