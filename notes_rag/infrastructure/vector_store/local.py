from __future__ import annotations

import contextlib
import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ...domain.errors import PersistenceError, ValidationError
from ...domain.interfaces import MetadataInput, VectorStore
from ...domain.models import RecordMetadata, SearchFilter, SearchHit
from ...domain.similarity import fit_dimension, normalize, normalize_rows
from ..logging import get_logger

logger = get_logger("notes_rag.vector_store")

SNAPSHOT_FILE = "vectors.json"

_RESERVED_KEYS = {"category", "added_at", "updated_at", "extra"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _split_metadata(metadata: MetadataInput) -> Tuple[bool, Optional[str], Dict[str, object]]:
    """Return (category_given, category, extra) from caller metadata."""
    if metadata is None:
        return False, None, {}
    if isinstance(metadata, RecordMetadata):
        return True, metadata.category, dict(metadata.extra)
    extra: Dict[str, object] = {}
    nested = metadata.get("extra")
    if isinstance(nested, Mapping):
        extra.update(nested)
    extra.update({k: v for k, v in metadata.items() if k not in _RESERVED_KEYS})
    category = metadata.get("category")
    return "category" in metadata, (str(category) if category is not None else None), extra


class LocalVectorStore(VectorStore):
    """In-process vector index persisted as a single JSON snapshot.

    Search is a linear scan over every stored vector, which is exact and fast
    enough for a personal note collection (thousands of records). The store
    is the single source of truth for similarity search; the note database
    only mirrors it through the ``has_embedding`` flag.

    Every mutating call rewrites the whole snapshot before returning, via a
    temp file in the storage directory followed by ``os.replace``, so the file
    on disk is always either the previous or the next complete state. When the
    write fails the in-memory mutation stays applied and ``PersistenceError``
    is raised: callers get at-least-once semantics and a later successful
    write (or a reindex) brings disk and memory back in line.

    All access goes through an ``RLock`` so searches running in one thread
    never observe a half-applied mutation from the embedding workers.
    """

    def __init__(
        self,
        storage_dir: Union[str, Path],
        dimension: int = 1024,
        default_top_k: int = 5,
        index_file: str = SNAPSHOT_FILE,
    ) -> None:
        if dimension <= 0:
            raise ValidationError(f"Dimension must be positive, got {dimension}")
        self.dimension = int(dimension)
        self.default_top_k = int(default_top_k)
        self._dir = Path(storage_dir)
        self._path = self._dir / index_file
        self._vectors: Dict[str, List[float]] = {}
        self._metadata: Dict[str, RecordMetadata] = {}
        self._ids: List[str] = []
        self._positions: Dict[str, int] = {}
        self._matrix: Optional[np.ndarray] = None
        self._saved_at: Optional[str] = None
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def saved_at(self) -> Optional[str]:
        return self._saved_at

    # --- lifecycle ---
    def init(self) -> None:
        """Create the storage directory and load any existing snapshot."""
        self._dir.mkdir(parents=True, exist_ok=True)
        self.load()
        logger.info(
            "Vector store initialized | vectors=%d | dimension=%d | path=%s",
            self.count(),
            self.dimension,
            self._path,
        )

    # --- mutations ---
    def add_vector(self, id: str, vector: Sequence[float], metadata: MetadataInput = None) -> None:
        self._require(id, vector)
        values = self._fit(id, vector)
        _, category, extra = _split_metadata(metadata)
        record_meta = RecordMetadata(category=category, added_at=_now(), extra=extra)
        with self._lock:
            self._vectors[id] = values
            self._metadata[id] = record_meta
            self._matrix = None
            self.save()
        logger.debug("Added vector | id=%s | dimension=%d", id, len(values))

    def update_vector(self, id: str, vector: Sequence[float], metadata: MetadataInput = None) -> None:
        with self._lock:
            if id not in self._vectors:
                self.add_vector(id, vector, metadata)
                return
            self._require(id, vector)
            values = self._fit(id, vector)
            current = self._metadata.get(id) or RecordMetadata()
            category_given, category, extra = _split_metadata(metadata)
            self._vectors[id] = values
            self._metadata[id] = RecordMetadata(
                category=category if category_given else current.category,
                added_at=current.added_at,
                updated_at=_now(),
                extra={**current.extra, **extra},
            )
            self._matrix = None
            self.save()
        logger.debug("Updated vector | id=%s", id)

    def remove_vector(self, id: str) -> bool:
        with self._lock:
            if id not in self._vectors:
                return False
            del self._vectors[id]
            self._metadata.pop(id, None)
            self._matrix = None
            self.save()
        logger.debug("Removed vector | id=%s", id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._vectors.clear()
            self._metadata.clear()
            self._ids = []
            self._positions = {}
            self._matrix = None
            self.save()
        logger.info("Vector store cleared | path=%s", self._path)

    # --- reads ---
    def get_vector(self, id: str) -> Optional[List[float]]:
        with self._lock:
            values = self._vectors.get(id)
            return list(values) if values is not None else None

    def get_metadata(self, id: str) -> Optional[RecordMetadata]:
        with self._lock:
            return self._metadata.get(id)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._vectors)

    def count(self) -> int:
        with self._lock:
            return len(self._vectors)

    def stats(self) -> Dict[str, object]:
        with self._lock:
            total = len(self._vectors)
        return {
            "total_vectors": total,
            "dimension": self.dimension,
            "storage_path": str(self._path),
            "memory_usage_bytes": total * self.dimension * 4,
            "saved_at": self._saved_at,
        }

    def search(
        self,
        query_vector: Sequence[float],
        top_k: Optional[int] = None,
        filter: Optional[SearchFilter] = None,
    ) -> List[SearchHit]:
        if query_vector is None or len(query_vector) == 0:
            raise ValidationError("Query vector is required")
        k = self.default_top_k if top_k is None else int(top_k)
        if k <= 0:
            raise ValidationError(f"top_k must be positive, got {k}")
        flt = filter or SearchFilter()

        query = np.asarray(fit_dimension(normalize(query_vector), self.dimension), dtype=np.float64)
        with self._lock:
            matrix, ids = self._ensure_index()
            metadata = dict(self._metadata)
        if not ids:
            return []

        scores = matrix @ query
        excluded = set(flt.exclude_ids)
        candidates = [
            pos
            for pos, id_ in enumerate(ids)
            if id_ not in excluded
            and not (flt.category and metadata.get(id_, RecordMetadata()).category != flt.category)
        ]
        # sorted() is stable, so equal scores keep insertion order
        ranked = sorted(candidates, key=lambda pos: scores[pos], reverse=True)[:k]
        return [
            SearchHit(id=ids[pos], score=float(scores[pos]), metadata=metadata.get(ids[pos], RecordMetadata()))
            for pos in ranked
        ]

    def batch_search(self, query_vectors: Sequence[Sequence[float]], top_k: Optional[int] = None) -> List[List[SearchHit]]:
        return [self.search(q, top_k) for q in query_vectors]

    # --- index maintenance ---
    def rebuild_index(self) -> None:
        """Recompute the ID-to-position mapping and normalized matrix, then persist."""
        with self._lock:
            self._matrix = None
            self._ensure_index()
            self.save()
        logger.info("Rebuilt index | vectors=%d", len(self._ids))

    def _ensure_index(self) -> Tuple[np.ndarray, List[str]]:
        # caller holds the lock
        if self._matrix is None:
            self._ids = list(self._vectors)
            self._positions = {id_: pos for pos, id_ in enumerate(self._ids)}
            if self._ids:
                raw = np.asarray([self._vectors[id_] for id_ in self._ids], dtype=np.float64)
                self._matrix = normalize_rows(raw)
            else:
                self._matrix = np.zeros((0, self.dimension), dtype=np.float64)
        return self._matrix, self._ids

    # --- persistence ---
    def save(self) -> None:
        """Write the full snapshot atomically (temp file + replace)."""
        with self._lock:
            saved_at = _now()
            payload = {
                "dimension": self.dimension,
                "vectors": self._vectors,
                "metadata": {id_: meta.to_dict() for id_, meta in self._metadata.items()},
                "saved_at": saved_at,
            }
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._dir))
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        json.dump(payload, handle)
                    os.replace(tmp_path, self._path)
                finally:
                    if os.path.exists(tmp_path):
                        with contextlib.suppress(OSError):
                            os.remove(tmp_path)
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Failed to save vectors | path=%s | error=%s", self._path, exc)
                raise PersistenceError(f"Failed to save vector snapshot to {self._path}: {exc}") from exc
            self._saved_at = saved_at
        logger.debug("Saved vectors | count=%d | path=%s", len(self._vectors), self._path)

    def load(self) -> None:
        """Replace in-memory state with the snapshot; a missing file means empty."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No existing vector snapshot, starting fresh | path=%s", self._path)
            with self._lock:
                self._vectors = {}
                self._metadata = {}
                self._ids = []
                self._positions = {}
                self._matrix = None
                self._saved_at = None
            return
        except OSError as exc:
            raise PersistenceError(f"Failed to read vector snapshot {self._path}: {exc}") from exc

        try:
            data = json.loads(raw)
            stored_dim = data.get("dimension")
            vectors_raw = data.get("vectors") or {}
            metadata_raw = data.get("metadata") or {}
            if stored_dim and int(stored_dim) != self.dimension:
                logger.warning(
                    "Stored dimension differs from configured | stored=%s | configured=%d | vectors will be adjusted",
                    stored_dim,
                    self.dimension,
                )
            vectors = {str(id_): fit_dimension(values, self.dimension) for id_, values in vectors_raw.items()}
            metadata = {
                id_: RecordMetadata.from_dict(metadata_raw.get(id_) or {})
                for id_ in vectors
            }
        except (ValueError, TypeError, AttributeError) as exc:
            raise PersistenceError(f"Corrupt vector snapshot {self._path}: {exc}") from exc

        with self._lock:
            self._vectors = vectors
            self._metadata = metadata
            self._matrix = None
            self._ensure_index()
            self._saved_at = data.get("saved_at")
        logger.info("Loaded vectors from disk | count=%d", len(vectors))

    # --- helpers ---
    @staticmethod
    def _require(id: str, vector: Sequence[float]) -> None:
        if not id or vector is None or len(vector) == 0:
            raise ValidationError("ID and vector are required")

    def _fit(self, id: str, vector: Sequence[float]) -> List[float]:
        if len(vector) != self.dimension:
            logger.warning(
                "Vector dimension mismatch | id=%s | expected=%d | got=%d | adjusting",
                id,
                self.dimension,
                len(vector),
            )
        return fit_dimension(vector, self.dimension)
