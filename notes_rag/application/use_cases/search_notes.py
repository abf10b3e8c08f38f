from __future__ import annotations

from typing import Dict, List

from ..dto import HybridSearchRequest, RetrieveRequest, SearchRequest, SearchResult
from .hybrid_search import HybridSearchUseCase
from .retrieve_notes import RetrieveNotesUseCase
from ...domain.errors import ValidationError
from ...domain.interfaces import NoteRepository
from ...domain.models import Note

SEARCH_MODES = ("semantic", "keyword", "hybrid")


def keyword_results(notes: List[Note]) -> List[SearchResult]:
    """Attach rank scores ``1 - i/N`` to an already ordered keyword result list."""
    n = len(notes)
    return [SearchResult(note=note, score=1.0 - i / n) for i, note in enumerate(notes)]


class SearchNotesUseCase:
    """Use-case: run a search in one of the three modes."""

    def __init__(self, retrieve: RetrieveNotesUseCase, hybrid: HybridSearchUseCase, notes: NoteRepository) -> None:
        self._retrieve = retrieve
        self._hybrid = hybrid
        self._notes = notes

    def execute(self, req: SearchRequest) -> List[SearchResult]:
        if req.mode not in SEARCH_MODES:
            raise ValidationError(f"Unknown search mode: {req.mode!r} (expected one of {', '.join(SEARCH_MODES)})")
        if not isinstance(req.query, str) or not req.query.strip():
            raise ValidationError("Query must be a non-empty string")
        if req.limit <= 0:
            raise ValidationError(f"limit must be positive, got {req.limit}")

        if req.mode == "hybrid":
            return self._hybrid.execute(
                HybridSearchRequest(query=req.query, limit=req.limit, weight=req.weight, category=req.category)
            )
        if req.mode == "semantic":
            scored = self._retrieve.execute(RetrieveRequest(query=req.query, top_k=req.limit, category=req.category))
            return [SearchResult(note=s.note, score=s.score) for s in scored]

        return keyword_results(self._notes.full_text_search(req.query, limit=req.limit, category=req.category))

    def suggest(self, query: str, limit: int = 5) -> List[Dict[str, str]]:
        """Title and tag completions for ``query``; empty below two characters."""
        query = (query or "").strip()
        if len(query) < 2:
            return []
        titles = self._notes.search_titles(query, limit=limit)
        q = query.lower()
        tags = [t for t in self._notes.distinct_tags() if q in t.lower()][:limit]
        out = [{"type": "title", "value": n.title} for n in titles]
        out.extend({"type": "tag", "value": t} for t in tags)
        return out[: limit * 2]
