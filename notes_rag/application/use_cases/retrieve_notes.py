from __future__ import annotations

from typing import List, Sequence

from ..dto import RetrieveRequest
from ...domain.errors import NoteNotFound, ValidationError
from ...domain.interfaces import EmbeddingService, NoteRepository, VectorStore
from ...domain.models import ScoredNote, SearchFilter, SearchHit
from ...infrastructure.logging import get_logger

logger = get_logger("notes_rag.retrieval")


class RetrieveNotesUseCase:
    """Use-case: embed query text, search the vector store, resolve hits to notes.

    Notes come back in the store's ranking order with the similarity score
    attached. Hits whose note no longer exists (or is archived) are dropped
    silently, so the result may be shorter than ``top_k``.
    """

    def __init__(self, embeddings: EmbeddingService, store: VectorStore, notes: NoteRepository) -> None:
        self._emb = embeddings
        self._store = store
        self._notes = notes

    def execute(self, req: RetrieveRequest) -> List[ScoredNote]:
        if not isinstance(req.query, str) or not req.query.strip():
            raise ValidationError("Query must be a non-empty string")
        vec = self._emb.embed_text(req.query)
        hits = self._store.search(
            vec.values,
            top_k=req.top_k,
            filter=SearchFilter(exclude_ids=list(req.exclude_ids), category=req.category),
        )
        results = self._resolve(hits)
        logger.debug("Retrieve | query_len=%d | hits=%d | resolved=%d", len(req.query), len(hits), len(results))
        return results

    def related(self, note_id: str, limit: int = 5) -> List[ScoredNote]:
        """Notes most similar to ``note_id``'s content, excluding the note itself."""
        if limit <= 0:
            raise ValidationError(f"limit must be positive, got {limit}")
        note = self._notes.find_by_id(note_id)
        if note is None:
            raise NoteNotFound(note_id)
        vec = self._emb.embed_text(note.content)
        hits = self._store.search(vec.values, top_k=limit + 1, filter=SearchFilter(exclude_ids=[note_id]))
        return self._resolve(hits)[:limit]

    def _resolve(self, hits: Sequence[SearchHit]) -> List[ScoredNote]:
        if not hits:
            return []
        by_id = {n.id: n for n in self._notes.find_by_ids([h.id for h in hits])}
        out: List[ScoredNote] = []
        for h in hits:
            note = by_id.get(h.id)
            if note is None or note.is_archived:
                continue
            out.append(ScoredNote(note=note, score=h.score))
        return out
