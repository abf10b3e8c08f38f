"""
Pytest configuration and fixtures for notes-rag tests.

Provides temporary note databases, vector stores and deterministic embedding
services so retrieval can be tested without a running provider.
"""

import os
from typing import Dict, List, Optional
from unittest.mock import Mock

import pytest

from notes_rag.domain.errors import UpstreamUnavailable
from notes_rag.domain.interfaces import EmbeddingService
from notes_rag.domain.models import Generation, Note, Vector
from notes_rag.infrastructure.sqlite.note_repository import SQLiteNoteRepository
from notes_rag.infrastructure.vector_store.local import LocalVectorStore


class KeyedEmbeddingService(EmbeddingService):
    """Returns a fixed vector per text; unknown texts raise UpstreamUnavailable."""

    def __init__(self, vectors: Dict[str, List[float]], dim: int = 3, fail_on: Optional[set] = None):
        self.vectors = dict(vectors)
        self.dim = dim
        self.fail_on = set(fail_on or ())
        self.calls: List[str] = []

    def embed_text(self, text: str) -> Vector:
        self.calls.append(text)
        if text in self.fail_on or text not in self.vectors:
            raise UpstreamUnavailable(f"no vector for {text!r}")
        values = self.vectors[text]
        return Vector(values=list(values), dim=len(values), model="keyed-test")

    def get_dimension(self) -> int:
        return self.dim

    def model_name(self) -> str:
        return "keyed-test"


@pytest.fixture
def note_repo(tmp_path):
    """Initialized SQLite note repository in a temporary directory."""
    repo = SQLiteNoteRepository(tmp_path / "notes.db")
    repo.init()
    return repo


@pytest.fixture
def vector_store(tmp_path):
    """Initialized 3-dimensional vector store in a temporary directory."""
    store = LocalVectorStore(tmp_path / "vector_index", dimension=3, default_top_k=5)
    store.init()
    return store


@pytest.fixture
def keyed_embeddings():
    return KeyedEmbeddingService


@pytest.fixture
def make_note(note_repo):
    """Factory creating and persisting a note."""

    def _make(note_id: str, content: str, **fields) -> Note:
        note = Note(id=note_id, content=content, **fields)
        return note_repo.create(note)

    return _make


@pytest.fixture
def mock_generator():
    """Mock text generator returning a canned generation."""
    mock = Mock()
    mock.generate.return_value = Generation(content="generated text", tokens_used=42)
    return mock


@pytest.fixture
def clean_environment():
    """Clean environment variables for testing."""
    env_vars_to_clean = [
        "NOTES_DB_PATH",
        "VECTOR_STORE_PATH",
        "EMBEDDING_DIMENSION",
        "TOP_K_RESULTS",
        "EMBED_PROVIDER",
        "EMBED_MODEL",
        "OLLAMA_URL",
        "OPENAI_API_KEY",
        "LLM_PROVIDER",
        "EMBED_TIMEOUT",
        "LLM_TIMEOUT",
        "HYBRID_SEMANTIC_WEIGHT",
        "REINDEX_BATCH_SIZE",
    ]

    original_env = {}
    for var in env_vars_to_clean:
        if var in os.environ:
            original_env[var] = os.environ[var]
            del os.environ[var]

    yield

    for var in env_vars_to_clean:
        os.environ.pop(var, None)
    for var, value in original_env.items():
        os.environ[var] = value


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "cli: mark test as CLI command test")
    config.addinivalue_line("markers", "env: mark test as environment resolution test")
