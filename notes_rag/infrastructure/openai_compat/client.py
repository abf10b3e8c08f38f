"""Adapters for OpenAI-compatible endpoints (NVIDIA API catalog and similar).

Both adapters send ``Authorization: Bearer <OPENAI_API_KEY>`` and surface any
transport or payload problem as ``UpstreamUnavailable``.
"""
from __future__ import annotations

from typing import Dict, List, Optional

import requests

from ...domain.errors import UpstreamUnavailable
from ...domain.interfaces import EmbeddingService, TextGenerator
from ...domain.models import ChatMessage, Generation, Vector
from ..config import embed_model, llm_max_tokens, llm_model, llm_temperature, openai_api_key, openai_base_url
from ..timeouts import embed_timeout_seconds, llm_timeout_seconds


def _headers(api_key: Optional[str]) -> Dict[str, str]:
    if not api_key:
        raise UpstreamUnavailable("OPENAI_API_KEY is not configured")
    return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}


class OpenAICompatEmbeddingService(EmbeddingService):
    """Embedding adapter for POST {base}/embeddings."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._base = (base_url or openai_base_url()).rstrip("/")
        self._api_key = api_key or openai_api_key()
        self._model = model or embed_model()
        self._timeout = timeout or embed_timeout_seconds()

    def model_name(self) -> str:
        return self._model

    def embed_text(self, text: str) -> Vector:
        body = {"input": [text], "model": self._model, "encoding_format": "float", "input_type": "query"}
        try:
            r = requests.post(f"{self._base}/embeddings", json=body, headers=_headers(self._api_key), timeout=self._timeout)
            r.raise_for_status()
            values = [float(x) for x in r.json()["data"][0]["embedding"]]
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"Embedding request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed embedding response: {exc}") from exc
        if not values:
            raise UpstreamUnavailable("Provider returned an empty embedding")
        return Vector(values=values, dim=len(values), model=self._model)

    def get_dimension(self) -> int:
        return self.embed_text("dimension check").dim


class OpenAICompatTextGenerator(TextGenerator):
    """Chat adapter for POST {base}/chat/completions."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._base = (base_url or openai_base_url()).rstrip("/")
        self._api_key = api_key or openai_api_key()
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
            "max_tokens": max_tokens or llm_max_tokens(),
            "temperature": llm_temperature() if temperature is None else temperature,
            "top_p": 0.9,
            "stream": False,
        }
        try:
            r = requests.post(
                f"{self._base}/chat/completions",
                json=body,
                headers=_headers(self._api_key),
                timeout=self._timeout,
            )
            r.raise_for_status()
            data = r.json()
            content = str(data["choices"][0]["message"]["content"])
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"Chat completion request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed chat completion response: {exc}") from exc
        usage = data.get("usage") or {}
        return Generation(content=content.strip(), tokens_used=int(usage.get("total_tokens") or 0))
