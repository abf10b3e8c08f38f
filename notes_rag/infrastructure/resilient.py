from __future__ import annotations

from typing import Optional

from ..domain.errors import UpstreamUnavailable, ValidationError
from ..domain.interfaces import EmbeddingService
from ..domain.models import Vector
from .logging import get_logger

logger = get_logger("notes_rag.embeddings")


class ResilientEmbeddingService(EmbeddingService):
    """Primary provider with a deterministic local fallback.

    Texts are truncated to ``max_chars`` before embedding. When the primary
    provider raises ``UpstreamUnavailable`` (timeout, HTTP error, malformed
    payload) the fallback embedding is returned instead and a warning is
    logged, so retrieval keeps working with degraded accuracy. With no primary
    configured every call goes straight to the fallback.
    """

    def __init__(self, primary: Optional[EmbeddingService], fallback: EmbeddingService, max_chars: int = 8000) -> None:
        self._primary = primary
        self._fallback = fallback
        self._max_chars = max_chars

    def model_name(self) -> str:
        return (self._primary or self._fallback).model_name()

    def get_dimension(self) -> int:
        if self._primary is None:
            return self._fallback.get_dimension()
        try:
            return self._primary.get_dimension()
        except UpstreamUnavailable as exc:
            logger.warning("Dimension lookup failed, using fallback dimension | error=%s", exc)
            return self._fallback.get_dimension()

    def embed_text(self, text: str) -> Vector:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text must be a non-empty string")
        text = text[: self._max_chars]
        if self._primary is None:
            return self._fallback.embed_text(text)
        try:
            return self._primary.embed_text(text)
        except UpstreamUnavailable as exc:
            logger.warning(
                "Embedding provider unavailable, using fallback embedding | model=%s | error=%s",
                self._primary.model_name(),
                exc,
            )
            return self._fallback.embed_text(text)
