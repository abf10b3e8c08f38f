from __future__ import annotations

import contextlib
import os
from pathlib import Path
from typing import Dict, Optional


def _parse_dotenv(dotenv_path: Path) -> Dict[str, str]:
    """Parse a simple .env file (KEY=VALUE per line, '#' comments, quotes stripped)."""
    env: Dict[str, str] = {}
    if dotenv_path.exists():
        with contextlib.suppress(OSError):
            for raw in dotenv_path.read_text(encoding="utf-8", errors="ignore").splitlines():
                s = raw.strip()
                if not s or s.startswith("#") or "=" not in s:
                    continue
                k, v = s.split("=", 1)
                k = k.strip()
                v = v.strip().strip('"').strip("'")
                if k:
                    env[k] = v
    return env


def env_get(key: str) -> Optional[str]:
    """Get environment value from process env, falling back to .env in CWD."""
    v = os.getenv(key)
    if v is not None and v.strip():
        return v.strip()
    v2 = _parse_dotenv(Path(".env")).get(key)
    return v2.strip() if v2 is not None and v2.strip() else None


def env_str(name: str, default: str) -> str:
    return env_get(name) or default


def env_int(name: str, default: int) -> int:
    try:
        return int(env_str(name, str(default)))
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(env_str(name, str(default)))
    except ValueError:
        return default


def notes_db_path() -> Path:
    return Path(env_str("NOTES_DB_PATH", "./data/notes.db")).expanduser()


def vector_store_path() -> Path:
    return Path(env_str("VECTOR_STORE_PATH", "./data/vector_index")).expanduser()


def embedding_dimension() -> int:
    dim = env_int("EMBEDDING_DIMENSION", 1024)
    return dim if dim > 0 else 1024


def default_top_k() -> int:
    k = env_int("TOP_K_RESULTS", 5)
    return k if k > 0 else 5


def embed_provider() -> str:
    return env_str("EMBED_PROVIDER", "ollama").lower()


def embed_model() -> str:
    return env_str("EMBED_MODEL", "mxbai-embed-large")


def embed_max_chars() -> int:
    return env_int("EMBED_MAX_CHARS", 8000)


def ollama_url() -> str:
    return env_str("OLLAMA_URL", "http://localhost:11434").rstrip("/")


def openai_base_url() -> str:
    return env_str("OPENAI_BASE_URL", "https://integrate.api.nvidia.com/v1").rstrip("/")


def openai_api_key() -> Optional[str]:
    return env_get("OPENAI_API_KEY")


def llm_provider() -> str:
    return env_str("LLM_PROVIDER", "ollama").lower()


def llm_model() -> str:
    return env_str("LLM_MODEL", "llama3.1")


def llm_max_tokens() -> int:
    return env_int("LLM_MAX_TOKENS", 1024)


def llm_temperature() -> float:
    return env_float("LLM_TEMPERATURE", 0.7)


def embed_workers() -> int:
    return max(1, env_int("EMBED_WORKERS", 2))


def embed_queue_size() -> int:
    return max(1, env_int("EMBED_QUEUE_SIZE", 256))


def reindex_batch_size() -> int:
    return max(1, env_int("REINDEX_BATCH_SIZE", 10))


def hybrid_semantic_weight() -> float:
    w = env_float("HYBRID_SEMANTIC_WEIGHT", 0.7)
    return w if 0.0 <= w <= 1.0 else 0.7
