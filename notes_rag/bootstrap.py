"""Wires the concrete adapters into the use-cases.

The entry point owns the lifecycle: ``build_container()`` then ``init()``
before use, ``shutdown()`` before exit so queued embedding jobs are drained.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .application.use_cases.assistant import AssistantUseCase
from .application.use_cases.hybrid_search import HybridSearchUseCase
from .application.use_cases.manage_notes import ManageNotesUseCase
from .application.use_cases.retrieve_notes import RetrieveNotesUseCase
from .application.use_cases.search_notes import SearchNotesUseCase
from .application.use_cases.sync_embeddings import EmbeddingSyncUseCase
from .domain.errors import ValidationError
from .domain.interfaces import EmbeddingService, TextGenerator
from .infrastructure import config
from .infrastructure.fallback.embedding import HashEmbeddingService
from .infrastructure.logging import get_logger
from .infrastructure.ollama.client import OllamaEmbeddingService, OllamaTextGenerator
from .infrastructure.openai_compat.client import OpenAICompatEmbeddingService, OpenAICompatTextGenerator
from .infrastructure.resilient import ResilientEmbeddingService
from .infrastructure.sqlite.note_repository import SQLiteNoteRepository
from .infrastructure.vector_store.local import LocalVectorStore
from .infrastructure.worker import EmbeddingWorkerPool

logger = get_logger("notes_rag.bootstrap")

PROVIDERS = ("ollama", "openai", "fallback")


def _primary_embeddings(provider: str) -> Optional[EmbeddingService]:
    if provider == "ollama":
        return OllamaEmbeddingService()
    if provider == "openai":
        return OpenAICompatEmbeddingService()
    if provider == "fallback":
        return None
    raise ValidationError(f"Unknown EMBED_PROVIDER: {provider!r} (expected one of {', '.join(PROVIDERS)})")


def _generator(provider: str) -> Optional[TextGenerator]:
    if provider == "ollama":
        return OllamaTextGenerator()
    if provider == "openai":
        return OpenAICompatTextGenerator()
    if provider == "fallback":
        return None
    raise ValidationError(f"Unknown LLM_PROVIDER: {provider!r} (expected one of {', '.join(PROVIDERS)})")


@dataclass
class Container:
    notes: SQLiteNoteRepository
    store: LocalVectorStore
    embeddings: ResilientEmbeddingService
    generator: Optional[TextGenerator]
    worker: EmbeddingWorkerPool
    sync: EmbeddingSyncUseCase
    retrieve: RetrieveNotesUseCase
    hybrid: HybridSearchUseCase
    search: SearchNotesUseCase
    manage: ManageNotesUseCase
    assistant: AssistantUseCase

    def init(self) -> None:
        self.notes.init()
        self.store.init()
        self.worker.start()

    def shutdown(self, wait: bool = True) -> None:
        self.worker.shutdown(wait=wait)


def build_container(
    db_path: Optional[Union[str, Path]] = None,
    store_path: Optional[Union[str, Path]] = None,
    embed_provider: Optional[str] = None,
    llm_provider: Optional[str] = None,
) -> Container:
    dim = config.embedding_dimension()
    notes = SQLiteNoteRepository(db_path or config.notes_db_path())
    store = LocalVectorStore(store_path or config.vector_store_path(), dimension=dim, default_top_k=config.default_top_k())
    embeddings = ResilientEmbeddingService(
        _primary_embeddings((embed_provider or config.embed_provider()).lower()),
        HashEmbeddingService(dim),
        max_chars=config.embed_max_chars(),
    )
    generator = _generator((llm_provider or config.llm_provider()).lower())

    sync = EmbeddingSyncUseCase(notes, embeddings, store, batch_size=config.reindex_batch_size())
    worker = EmbeddingWorkerPool(sync.index_note, workers=config.embed_workers(), queue_size=config.embed_queue_size())
    sync.attach_worker(worker)

    retrieve = RetrieveNotesUseCase(embeddings, store, notes)
    hybrid = HybridSearchUseCase(retrieve, notes, default_weight=config.hybrid_semantic_weight())
    logger.debug(
        "Container built | db=%s | store=%s | dim=%d | embed_model=%s",
        notes.db_path,
        store.path,
        dim,
        embeddings.model_name(),
    )
    return Container(
        notes=notes,
        store=store,
        embeddings=embeddings,
        generator=generator,
        worker=worker,
        sync=sync,
        retrieve=retrieve,
        hybrid=hybrid,
        search=SearchNotesUseCase(retrieve, hybrid, notes),
        manage=ManageNotesUseCase(notes, sync),
        assistant=AssistantUseCase(generator, retrieve, notes),
    )
