"""
Environment resolution tests: process env first, then .env in the working directory,
with defaults for missing or malformed values.
"""

import pytest

from notes_rag.infrastructure import config
from notes_rag.infrastructure.timeouts import embed_timeout_seconds, llm_timeout_seconds


@pytest.mark.env
class TestEnvResolution:
    def test_defaults(self, clean_environment, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert config.embedding_dimension() == 1024
        assert config.default_top_k() == 5
        assert config.embed_provider() == "ollama"
        assert config.hybrid_semantic_weight() == pytest.approx(0.7)
        assert config.reindex_batch_size() == 10
        assert config.embed_max_chars() == 8000
        assert embed_timeout_seconds() == 30
        assert llm_timeout_seconds() == 60

    def test_dotenv_fallback(self, clean_environment, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text(
            "# comment\nEMBEDDING_DIMENSION=384\nEMBED_MODEL='nomic-embed-text'\n",
            encoding="utf-8",
        )
        assert config.embedding_dimension() == 384
        assert config.embed_model() == "nomic-embed-text"

    def test_process_env_wins(self, clean_environment, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("TOP_K_RESULTS=9\n", encoding="utf-8")
        monkeypatch.setenv("TOP_K_RESULTS", "3")
        assert config.default_top_k() == 3

    def test_malformed_numbers_use_default(self, clean_environment, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("EMBEDDING_DIMENSION", "lots")
        monkeypatch.setenv("HYBRID_SEMANTIC_WEIGHT", "heavy")
        monkeypatch.setenv("EMBED_TIMEOUT", "-5")
        assert config.embedding_dimension() == 1024
        assert config.hybrid_semantic_weight() == pytest.approx(0.7)
        assert embed_timeout_seconds() == 30
