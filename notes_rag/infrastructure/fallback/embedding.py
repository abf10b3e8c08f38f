"""Deterministic local embedding used in degraded mode.

This is not a learned embedding. Each lower-cased word and each character
trigram of a word is hashed (blake2b, so results are stable across processes)
onto one of ``dim`` buckets with a hash-derived sign; words weigh twice as much
as trigrams. The result is L2-normalized. Texts sharing words or word
fragments therefore land closer together, and identical texts always produce
identical vectors.
"""
from __future__ import annotations

import hashlib
import re
from typing import List

import numpy as np

from ...domain.interfaces import EmbeddingService
from ...domain.models import Vector

MODEL_NAME = "local-hash-v1"

_WORD_RE = re.compile(r"\w+", re.UNICODE)
_WORD_WEIGHT = 2.0
_TRIGRAM_WEIGHT = 1.0


def _bucket(feature: str, dim: int) -> tuple[int, float]:
    h = int.from_bytes(hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest(), "big")
    sign = 1.0 if (h >> 63) == 0 else -1.0
    return h % dim, sign


def hash_embedding(text: str, dim: int) -> List[float]:
    vec = np.zeros(dim, dtype=np.float64)
    for word in _WORD_RE.findall(text.lower()):
        idx, sign = _bucket(f"w:{word}", dim)
        vec[idx] += sign * _WORD_WEIGHT
        padded = f"#{word}#"
        for i in range(len(padded) - 2):
            idx, sign = _bucket(f"t:{padded[i:i + 3]}", dim)
            vec[idx] += sign * _TRIGRAM_WEIGHT
    norm = float(np.linalg.norm(vec))
    if norm > 0:
        vec = vec / norm
    return vec.tolist()


class HashEmbeddingService(EmbeddingService):
    """Embedding adapter that never leaves the process."""

    def __init__(self, dimension: int = 1024) -> None:
        self._dim = int(dimension)

    def model_name(self) -> str:
        return MODEL_NAME

    def embed_text(self, text: str) -> Vector:
        return Vector(values=hash_embedding(text, self._dim), dim=self._dim, model=MODEL_NAME)

    def get_dimension(self) -> int:
        return self._dim
