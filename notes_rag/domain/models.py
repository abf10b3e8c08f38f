from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Vector:
    """Embedding vector with explicit dimension.

    Fields:
        values: The numeric embedding.
        dim: Dimension; the vector store fits it to the configured size.
        model: Identifier of the model that produced the values.
    """
    values: List[float]
    dim: int
    model: Optional[str] = None


@dataclass(frozen=True)
class RecordMetadata:
    """Metadata kept next to each vector in the store.

    Fields:
        category: Note category; the only field search filters on.
        added_at: ISO timestamp set when the record was (re)created.
        updated_at: ISO timestamp of the last in-place update, if any.
        extra: Open extension map for anything else callers attach.
    """
    category: Optional[str] = None
    added_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "category": self.category,
            "added_at": self.added_at,
            "updated_at": self.updated_at,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "RecordMetadata":
        extra = data.get("extra")
        return cls(
            category=data.get("category"),  # type: ignore[arg-type]
            added_at=data.get("added_at"),  # type: ignore[arg-type]
            updated_at=data.get("updated_at"),  # type: ignore[arg-type]
            extra=dict(extra) if isinstance(extra, dict) else {},
        )


@dataclass(frozen=True)
class SearchFilter:
    """Optional constraints applied during vector search.

    Fields:
        exclude_ids: Record IDs that must never appear in results.
        category: When set, only records with this exact category match.
    """
    exclude_ids: List[str] = field(default_factory=list)
    category: Optional[str] = None


@dataclass(frozen=True)
class SearchHit:
    """Vector search match returned by the store.

    Fields:
        id: Record ID (the note ID).
        score: Dot product of normalized vectors; higher is better.
        metadata: Stored record metadata.
    """
    id: str
    score: float
    metadata: RecordMetadata


@dataclass
class Note:
    """A user note as held by the note repository."""
    id: str
    content: str
    title: str = "Untitled Note"
    tags: List[str] = field(default_factory=list)
    category: str = "General"
    is_pinned: bool = False
    is_archived: bool = False
    has_embedding: bool = False
    summary: Optional[str] = None
    suggested_title: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def character_count(self) -> int:
        return len(self.content)

    @property
    def reading_time(self) -> int:
        """Minutes at 200 words per minute."""
        return math.ceil(self.word_count / 200)

    def preview(self, length: int = 200) -> str:
        if len(self.content) <= length:
            return self.content
        return self.content[:length] + "..."

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "category": self.category,
            "is_pinned": self.is_pinned,
            "is_archived": self.is_archived,
            "has_embedding": self.has_embedding,
            "summary": self.summary,
            "suggested_title": self.suggested_title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "word_count": self.word_count,
            "character_count": self.character_count,
            "reading_time": self.reading_time,
        }


@dataclass(frozen=True)
class EmbeddingRecord:
    """Association between a note and the vector stored for it.

    Fields:
        note_id: Owning note; at most one record per note.
        text_hash: md5 of the content that produced the stored vector.
        model: Embedding model identifier.
        dimension: Length of the vector as produced by the provider.
        chunk_index: Position of this chunk (single-chunk notes use 0).
        chunk_count: Number of chunks for the note (currently always 1).
    """
    note_id: str
    text_hash: str
    model: str
    dimension: int
    chunk_index: int = 0
    chunk_count: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class ScoredNote:
    """A note returned by retrieval with its similarity score."""
    note: Note
    score: float


@dataclass(frozen=True)
class FusedScore:
    """Hybrid ranking entry.

    Fields:
        id: Note ID.
        semantic: Weighted rank score from the semantic list (0 if absent).
        keyword: Weighted rank score from the lexical list (0 if absent).
    """
    id: str
    semantic: float
    keyword: float

    @property
    def total(self) -> float:
        return self.semantic + self.keyword


@dataclass(frozen=True)
class ReindexReport:
    total: int
    processed: int
    errors: int


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass(frozen=True)
class Generation:
    """Text produced by a generation provider.

    Fields:
        content: Generated text.
        tokens_used: Provider-reported token usage (0 when unknown or local).
        degraded: True when produced by the local fallback generator.
    """
    content: str
    tokens_used: int = 0
    degraded: bool = False
