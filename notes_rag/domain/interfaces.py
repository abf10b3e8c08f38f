from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Union

from .models import (
    ChatMessage,
    EmbeddingRecord,
    Generation,
    Note,
    RecordMetadata,
    SearchFilter,
    SearchHit,
    Vector,
)

MetadataInput = Union[RecordMetadata, Mapping[str, object], None]


class EmbeddingService(ABC):
    """Port for embedding provider (e.g., Ollama)."""

    @abstractmethod
    def embed_text(self, text: str) -> Vector:
        """Embed a single text into a vector.

        Raises:
            Exception: Provider/network failures should surface; callers decide.
        """
        raise NotImplementedError

    def embed_texts(self, texts: List[str]) -> List[Vector]:
        return [self.embed_text(t) for t in texts]

    @abstractmethod
    def get_dimension(self) -> int:
        """Return embedding dimension, probing provider if needed."""
        raise NotImplementedError

    @abstractmethod
    def model_name(self) -> str:
        raise NotImplementedError


class VectorStore(ABC):
    """Port for the vector index answering nearest-neighbour queries."""

    @abstractmethod
    def add_vector(self, id: str, vector: Sequence[float], metadata: MetadataInput = None) -> None:
        """Insert or overwrite the record for ``id``."""
        raise NotImplementedError

    @abstractmethod
    def update_vector(self, id: str, vector: Sequence[float], metadata: MetadataInput = None) -> None:
        """Replace the vector and merge metadata; inserts when ``id`` is absent."""
        raise NotImplementedError

    @abstractmethod
    def remove_vector(self, id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_vector(self, id: str) -> Optional[List[float]]:
        raise NotImplementedError

    @abstractmethod
    def search(
        self,
        query_vector: Sequence[float],
        top_k: Optional[int] = None,
        filter: Optional[SearchFilter] = None,
    ) -> List[SearchHit]:
        """Return up to ``top_k`` hits sorted by descending score."""
        raise NotImplementedError

    @abstractmethod
    def batch_search(self, query_vectors: Sequence[Sequence[float]], top_k: Optional[int] = None) -> List[List[SearchHit]]:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError


class NoteRepository(ABC):
    """Port for note persistence, keyword search and embedding bookkeeping."""

    @abstractmethod
    def create(self, note: Note) -> Note:
        raise NotImplementedError

    @abstractmethod
    def update(self, note: Note) -> Note:
        raise NotImplementedError

    @abstractmethod
    def delete(self, note_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, note_id: str) -> Optional[Note]:
        raise NotImplementedError

    @abstractmethod
    def find_by_ids(self, note_ids: Sequence[str]) -> List[Note]:
        """Return the notes that exist among ``note_ids``; order is unspecified."""
        raise NotImplementedError

    @abstractmethod
    def list_notes(
        self,
        *,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        pinned: Optional[bool] = None,
        archived: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Note]:
        raise NotImplementedError

    @abstractmethod
    def iter_all(self) -> Iterator[Note]:
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def full_text_search(
        self, query: str, limit: int = 20, include_archived: bool = False, category: Optional[str] = None
    ) -> List[Note]:
        """Keyword search, best match first."""
        raise NotImplementedError

    @abstractmethod
    def search_titles(self, query: str, limit: int = 5) -> List[Note]:
        """Non-archived notes whose title contains ``query``."""
        raise NotImplementedError

    @abstractmethod
    def distinct_tags(self, include_archived: bool = False) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def distinct_categories(self, include_archived: bool = False) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def set_has_embedding(self, note_id: str, value: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def upsert_embedding_record(self, record: EmbeddingRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_embedding_record(self, note_id: str) -> Optional[EmbeddingRecord]:
        raise NotImplementedError

    @abstractmethod
    def delete_embedding_record(self, note_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def prune_embedding_records(self) -> int:
        """Delete association records whose note no longer exists; return how many."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> Dict[str, object]:
        raise NotImplementedError


class TextGenerator(ABC):
    """Port for chat-style text generation (e.g., Ollama /api/chat)."""

    @abstractmethod
    def generate(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Generation:
        raise NotImplementedError
