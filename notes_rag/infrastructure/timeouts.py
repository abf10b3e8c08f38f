from __future__ import annotations

from .config import env_float

_EMBED_DEFAULT = 30.0
_LLM_DEFAULT = 60.0


def _bounded(value: float, default: float) -> float:
    return value if value > 0 else default


def embed_timeout_seconds() -> float:
    return _bounded(env_float("EMBED_TIMEOUT", _EMBED_DEFAULT), _EMBED_DEFAULT)


def llm_timeout_seconds() -> float:
    return _bounded(env_float("LLM_TIMEOUT", _LLM_DEFAULT), _LLM_DEFAULT)
