"""Keeps the vector index and the note database consistent.

The embedding pipeline is best effort: a note write never waits for it and
never fails because of it. Every step is logged; whatever drifts (a missing
vector, a stale association record, a wrong ``has_embedding`` flag) is
repaired by ``reindex_all``.
"""
from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ...domain.errors import ValidationError
from ...domain.interfaces import EmbeddingService, NoteRepository, VectorStore
from ...domain.models import EmbeddingRecord, Note, RecordMetadata, ReindexReport
from ...infrastructure.logging import get_logger
from ...infrastructure.worker import EmbeddingWorkerPool

logger = get_logger("notes_rag.sync")


def text_hash(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()


class EmbeddingSyncUseCase:
    def __init__(
        self,
        notes: NoteRepository,
        embeddings: EmbeddingService,
        store: VectorStore,
        worker: Optional[EmbeddingWorkerPool] = None,
        batch_size: int = 10,
    ) -> None:
        self._notes = notes
        self._emb = embeddings
        self._store = store
        self._worker = worker
        self._batch_size = batch_size

    def attach_worker(self, worker: Optional[EmbeddingWorkerPool]) -> None:
        self._worker = worker

    def schedule(self, note_id: str) -> bool:
        """Queue ``note_id`` for embedding; runs inline when no worker is attached."""
        if self._worker is None:
            return self.index_note(note_id)
        return self._worker.enqueue(note_id)

    def index_note(self, note_id: str) -> bool:
        """Embed the current content of ``note_id``. Returns False on any failure."""
        note = self._notes.find_by_id(note_id)
        if note is None:
            logger.info("Skipping embedding, note no longer exists | note_id=%s", note_id)
            return False
        try:
            self._embed(note)
        except Exception as exc:
            logger.error("Embedding pipeline failed | note_id=%s | error=%s", note_id, exc)
            return False
        logger.debug("Embedding stored | note_id=%s", note_id)
        return True

    def remove_note(self, note_id: str) -> None:
        """Drop the vector and the association record; failures are logged only."""
        try:
            self._store.remove_vector(note_id)
        except Exception as exc:
            logger.warning("Failed to delete vector | note_id=%s | error=%s", note_id, exc)
        try:
            self._notes.delete_embedding_record(note_id)
        except Exception as exc:
            logger.warning("Failed to delete embedding record | note_id=%s | error=%s", note_id, exc)

    def reindex_all(self, batch_size: Optional[int] = None) -> ReindexReport:
        size = self._batch_size if batch_size is None else int(batch_size)
        if size <= 0:
            raise ValidationError(f"batch_size must be positive, got {size}")

        logger.info("Reindex started | batch_size=%d", size)
        self._store.clear()
        notes = list(self._notes.iter_all())
        processed = 0
        errors = 0
        with ThreadPoolExecutor(max_workers=size, thread_name_prefix="reindex") as pool:
            for start in range(0, len(notes), size):
                batch = notes[start : start + size]
                ok = sum(1 for done in pool.map(self._reindex_one, batch) if done)
                processed += ok
                errors += len(batch) - ok
                logger.info(
                    "Reindex progress | done=%d/%d | processed=%d | errors=%d",
                    start + len(batch),
                    len(notes),
                    processed,
                    errors,
                )
        pruned = self._notes.prune_embedding_records()
        logger.info(
            "Reindex finished | total=%d | processed=%d | errors=%d | pruned_records=%d",
            len(notes),
            processed,
            errors,
            pruned,
        )
        return ReindexReport(total=len(notes), processed=processed, errors=errors)

    def _reindex_one(self, note: Note) -> bool:
        try:
            self._embed(note)
            return True
        except Exception as exc:
            logger.error("Reindex failed for note | note_id=%s | error=%s", note.id, exc)
        try:
            self._notes.delete_embedding_record(note.id)
            self._notes.set_has_embedding(note.id, False)
        except Exception as exc:
            logger.warning("Could not reset embedding state | note_id=%s | error=%s", note.id, exc)
        return False

    def _embed(self, note: Note) -> None:
        vec = self._emb.embed_text(note.content)
        self._notes.upsert_embedding_record(
            EmbeddingRecord(
                note_id=note.id,
                text_hash=text_hash(note.content),
                model=vec.model or self._emb.model_name(),
                dimension=vec.dim,
            )
        )
        self._store.update_vector(note.id, vec.values, RecordMetadata(category=note.category))
        self._notes.set_has_embedding(note.id, True)
