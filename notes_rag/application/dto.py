from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..domain.models import ChatMessage, Note


@dataclass(frozen=True)
class CreateNoteRequest:
    content: str
    title: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    category: Optional[str] = None
    is_pinned: bool = False


@dataclass(frozen=True)
class UpdateNoteRequest:
    """Partial update; ``None`` leaves a field unchanged."""
    note_id: str
    content: Optional[str] = None
    title: Optional[str] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_archived: Optional[bool] = None


@dataclass(frozen=True)
class ListNotesRequest:
    category: Optional[str] = None
    tag: Optional[str] = None
    pinned: Optional[bool] = None
    archived: bool = False
    page: int = 1
    limit: int = 20


@dataclass(frozen=True)
class RetrieveRequest:
    query: str
    top_k: Optional[int] = None
    category: Optional[str] = None
    exclude_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class HybridSearchRequest:
    query: str
    limit: int = 10
    weight: Optional[float] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class SearchRequest:
    query: str
    mode: str = "hybrid"
    limit: int = 10
    category: Optional[str] = None
    weight: Optional[float] = None


@dataclass(frozen=True)
class SearchResult:
    """One ranked note.

    Fields:
        note: The matched note.
        score: Ranking score (cosine similarity for semantic, fused total for hybrid,
            rank score for keyword).
        semantic_score: Weighted semantic contribution (hybrid only).
        keyword_score: Weighted lexical contribution (hybrid only).
    """
    note: Note
    score: float
    semantic_score: Optional[float] = None
    keyword_score: Optional[float] = None

    def to_dict(self, preview_length: int = 200) -> Dict[str, object]:
        n = self.note
        out: Dict[str, object] = {
            "id": n.id,
            "title": n.title,
            "preview": n.preview(preview_length),
            "tags": list(n.tags),
            "category": n.category,
            "score": round(self.score, 6),
        }
        if self.semantic_score is not None or self.keyword_score is not None:
            out["scores"] = {
                "total": round(self.score, 6),
                "semantic": round(self.semantic_score or 0.0, 6),
                "keyword": round(self.keyword_score or 0.0, 6),
            }
        return out


@dataclass(frozen=True)
class AskRequest:
    query: str
    top_k: Optional[int] = None


@dataclass(frozen=True)
class ChatRequest:
    message: str
    history: List[ChatMessage] = field(default_factory=list)
    top_k: Optional[int] = None


@dataclass(frozen=True)
class AssistantResponse:
    """Generated answer plus the notes it was grounded on."""
    content: str
    sources: List[SearchResult] = field(default_factory=list)
    tokens_used: int = 0
    degraded: bool = False
