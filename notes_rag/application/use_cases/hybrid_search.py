from __future__ import annotations

from typing import Dict, List

from ..dto import HybridSearchRequest, RetrieveRequest, SearchResult
from .retrieve_notes import RetrieveNotesUseCase
from ...domain.errors import ValidationError
from ...domain.interfaces import NoteRepository
from ...domain.models import Note
from ...domain.ranking import fuse_rankings
from ...infrastructure.logging import get_logger

logger = get_logger("notes_rag.search")


class HybridSearchUseCase:
    """Use-case: fuse semantic and keyword rankings into one list.

    Each side is asked for ``2 * limit`` candidates; positions are converted to
    rank scores and blended with ``weight`` (semantic share) before truncating
    to ``limit``.
    """

    def __init__(self, retrieve: RetrieveNotesUseCase, notes: NoteRepository, default_weight: float = 0.7) -> None:
        self._retrieve = retrieve
        self._notes = notes
        self._default_weight = default_weight

    def execute(self, req: HybridSearchRequest) -> List[SearchResult]:
        if not isinstance(req.query, str) or not req.query.strip():
            raise ValidationError("Query must be a non-empty string")
        if req.limit <= 0:
            raise ValidationError(f"limit must be positive, got {req.limit}")
        weight = self._default_weight if req.weight is None else req.weight
        if not 0.0 <= weight <= 1.0:
            raise ValidationError(f"weight must be within [0, 1], got {weight}")

        candidates = 2 * req.limit
        semantic = self._retrieve.execute(RetrieveRequest(query=req.query, top_k=candidates, category=req.category))
        lexical = self._notes.full_text_search(req.query, limit=candidates, category=req.category)

        notes: Dict[str, Note] = {n.id: n for n in lexical}
        notes.update({s.note.id: s.note for s in semantic})

        fused = fuse_rankings(
            [s.note.id for s in semantic],
            [n.id for n in lexical],
            weight=weight,
            limit=req.limit,
        )
        logger.info(
            "Hybrid search | semantic=%d | keyword=%d | fused=%d | weight=%.2f",
            len(semantic),
            len(lexical),
            len(fused),
            weight,
        )
        return [
            SearchResult(note=notes[f.id], score=f.total, semantic_score=f.semantic, keyword_score=f.keyword)
            for f in fused
        ]
