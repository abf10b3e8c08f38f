"""SQLite note repository.

Notes live in ``notes``; an external-content FTS5 table ``notes_fts`` is kept
in sync by triggers and ranked with ``bm25``. The ``embeddings`` table holds
one association record per note (content hash, model, chunking) describing the
vector currently stored for it in the vector store.

A connection is opened per operation, so the repository is safe to share with
the background embedding workers.
"""
from __future__ import annotations

import json
import re
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

from ...domain.interfaces import NoteRepository
from ...domain.models import EmbeddingRecord, Note
from ..logging import get_logger

logger = get_logger("notes_rag.notes")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS notes (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL DEFAULT 'Untitled Note',
    content TEXT NOT NULL,
    tags TEXT NOT NULL DEFAULT '[]',
    category TEXT NOT NULL DEFAULT 'General',
    is_pinned INTEGER NOT NULL DEFAULT 0,
    is_archived INTEGER NOT NULL DEFAULT 0,
    has_embedding INTEGER NOT NULL DEFAULT 0,
    summary TEXT,
    suggested_title TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_notes_category ON notes (category);
CREATE INDEX IF NOT EXISTS idx_notes_updated ON notes (is_pinned DESC, updated_at DESC);

CREATE TABLE IF NOT EXISTS embeddings (
    note_id TEXT PRIMARY KEY,
    text_hash TEXT NOT NULL,
    model TEXT NOT NULL,
    dimension INTEGER NOT NULL,
    chunk_index INTEGER NOT NULL DEFAULT 0,
    chunk_count INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_embeddings_hash ON embeddings (text_hash);
"""

_FTS_SCHEMA = """
CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
    title, content, tags, content='notes', content_rowid='seq'
);
CREATE TRIGGER IF NOT EXISTS notes_ai AFTER INSERT ON notes BEGIN
    INSERT INTO notes_fts(rowid, title, content, tags) VALUES (new.seq, new.title, new.content, new.tags);
END;
CREATE TRIGGER IF NOT EXISTS notes_ad AFTER DELETE ON notes BEGIN
    INSERT INTO notes_fts(notes_fts, rowid, title, content, tags) VALUES ('delete', old.seq, old.title, old.content, old.tags);
END;
CREATE TRIGGER IF NOT EXISTS notes_au AFTER UPDATE ON notes BEGIN
    INSERT INTO notes_fts(notes_fts, rowid, title, content, tags) VALUES ('delete', old.seq, old.title, old.content, old.tags);
    INSERT INTO notes_fts(rowid, title, content, tags) VALUES (new.seq, new.title, new.content, new.tags);
END;
"""

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def query_terms(query: str) -> List[str]:
    """Split a free-text query into FTS-safe lower-case terms (de-duplicated, ordered)."""
    terms: List[str] = []
    for t in _TOKEN_RE.findall(query.lower()):
        if t not in terms:
            terms.append(t)
    return terms


def _row_to_note(row: sqlite3.Row) -> Note:
    try:
        tags = json.loads(row["tags"] or "[]")
    except ValueError:
        tags = []
    return Note(
        id=row["id"],
        title=row["title"],
        content=row["content"],
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
        category=row["category"],
        is_pinned=bool(row["is_pinned"]),
        is_archived=bool(row["is_archived"]),
        has_embedding=bool(row["has_embedding"]),
        summary=row["summary"],
        suggested_title=row["suggested_title"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_record(row: sqlite3.Row) -> EmbeddingRecord:
    return EmbeddingRecord(
        note_id=row["note_id"],
        text_hash=row["text_hash"],
        model=row["model"],
        dimension=int(row["dimension"]),
        chunk_index=int(row["chunk_index"]),
        chunk_count=int(row["chunk_count"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SQLiteNoteRepository(NoteRepository):
    """Note storage over a single SQLite file."""

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = Path(db_path)
        self.fts_enabled = False

    def init(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._tx() as conn:
            conn.executescript(_SCHEMA)
        try:
            with self._tx() as conn:
                conn.executescript(_FTS_SCHEMA)
            self.fts_enabled = True
        except sqlite3.OperationalError as exc:
            logger.warning("FTS5 unavailable, keyword search uses LIKE matching | error=%s", exc)
        logger.info("Note repository ready | path=%s | fts=%s", self.db_path, self.fts_enabled)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # --- notes ---
    def create(self, note: Note) -> Note:
        now = _now()
        note.created_at = note.created_at or now
        note.updated_at = now
        with self._tx() as conn:
            conn.execute(
                """
                INSERT INTO notes (id, title, content, tags, category, is_pinned, is_archived,
                                   has_embedding, summary, suggested_title, created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    note.id,
                    note.title,
                    note.content,
                    json.dumps(list(note.tags)),
                    note.category,
                    int(note.is_pinned),
                    int(note.is_archived),
                    int(note.has_embedding),
                    note.summary,
                    note.suggested_title,
                    note.created_at,
                    note.updated_at,
                ),
            )
        return note

    def update(self, note: Note) -> Note:
        note.updated_at = _now()
        with self._tx() as conn:
            conn.execute(
                """
                UPDATE notes SET title=?, content=?, tags=?, category=?, is_pinned=?, is_archived=?,
                                 summary=?, suggested_title=?, updated_at=?
                WHERE id=?
                """,
                (
                    note.title,
                    note.content,
                    json.dumps(list(note.tags)),
                    note.category,
                    int(note.is_pinned),
                    int(note.is_archived),
                    note.summary,
                    note.suggested_title,
                    note.updated_at,
                    note.id,
                ),
            )
        return note

    def delete(self, note_id: str) -> bool:
        with self._tx() as conn:
            cur = conn.execute("DELETE FROM notes WHERE id=?", (note_id,))
            return cur.rowcount > 0

    def find_by_id(self, note_id: str) -> Optional[Note]:
        with self._tx() as conn:
            row = conn.execute("SELECT * FROM notes WHERE id=?", (note_id,)).fetchone()
        return _row_to_note(row) if row else None

    def find_by_ids(self, note_ids: Sequence[str]) -> List[Note]:
        ids = list(dict.fromkeys(note_ids))
        if not ids:
            return []
        marks = ",".join("?" for _ in ids)
        with self._tx() as conn:
            rows = conn.execute(f"SELECT * FROM notes WHERE id IN ({marks})", ids).fetchall()
        return [_row_to_note(r) for r in rows]

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
        clauses = ["is_archived = ?"]
        params: List[object] = [int(archived)]
        if category:
            clauses.append("category = ?")
            params.append(category)
        if pinned is not None:
            clauses.append("is_pinned = ?")
            params.append(int(pinned))
        sql = f"SELECT * FROM notes WHERE {' AND '.join(clauses)} ORDER BY is_pinned DESC, updated_at DESC, seq DESC"
        with self._tx() as conn:
            rows = conn.execute(sql, params).fetchall()
        notes = [_row_to_note(r) for r in rows]
        if tag:
            notes = [n for n in notes if tag in n.tags]
        return notes[offset : offset + limit]

    def iter_all(self) -> Iterator[Note]:
        with self._tx() as conn:
            rows = conn.execute("SELECT * FROM notes ORDER BY seq").fetchall()
        for r in rows:
            yield _row_to_note(r)

    def count(self) -> int:
        with self._tx() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0])

    def full_text_search(
        self, query: str, limit: int = 20, include_archived: bool = False, category: Optional[str] = None
    ) -> List[Note]:
        terms = query_terms(query or "")
        if not terms or limit <= 0:
            return []
        if not self.fts_enabled:
            return self._like_search(terms, limit, include_archived, category)
        match = " OR ".join(f'"{t}"' for t in terms)
        clauses = "" if include_archived else "AND n.is_archived = 0"
        params: List[object] = [match]
        if category:
            clauses += " AND n.category = ?"
            params.append(category)
        params.append(int(limit))
        sql = f"""
            SELECT n.* FROM notes_fts JOIN notes n ON notes_fts.rowid = n.seq
            WHERE notes_fts MATCH ? {clauses}
            ORDER BY bm25(notes_fts), n.seq
            LIMIT ?
        """
        try:
            with self._tx() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as exc:
            logger.warning("FTS query failed | query=%s | error=%s", match, exc)
            return []
        return [_row_to_note(r) for r in rows]

    def _like_search(self, terms: List[str], limit: int, include_archived: bool, category: Optional[str]) -> List[Note]:
        scored = []
        for note in self.iter_all():
            if note.is_archived and not include_archived:
                continue
            if category and note.category != category:
                continue
            haystack = f"{note.title}\n{note.content}\n{' '.join(note.tags)}".lower()
            hits = sum(haystack.count(t) for t in terms)
            if hits:
                scored.append((hits, note))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [n for _, n in scored[:limit]]

    def search_titles(self, query: str, limit: int = 5) -> List[Note]:
        with self._tx() as conn:
            rows = conn.execute(
                "SELECT * FROM notes WHERE is_archived = 0 AND title LIKE ? ORDER BY updated_at DESC LIMIT ?",
                (f"%{query}%", int(limit)),
            ).fetchall()
        return [_row_to_note(r) for r in rows]

    def distinct_tags(self, include_archived: bool = False) -> List[str]:
        tags: List[str] = []
        for note in self.iter_all():
            if note.is_archived and not include_archived:
                continue
            for t in note.tags:
                if t and t not in tags:
                    tags.append(t)
        return sorted(tags)

    def distinct_categories(self, include_archived: bool = False) -> List[str]:
        sql = "SELECT DISTINCT category FROM notes"
        if not include_archived:
            sql += " WHERE is_archived = 0"
        with self._tx() as conn:
            rows = conn.execute(sql + " ORDER BY category").fetchall()
        return [r[0] for r in rows]

    def set_has_embedding(self, note_id: str, value: bool) -> None:
        with self._tx() as conn:
            conn.execute("UPDATE notes SET has_embedding=? WHERE id=?", (int(value), note_id))

    def stats(self) -> Dict[str, object]:
        notes = list(self.iter_all())
        words = [n.word_count for n in notes]
        by_category: Dict[str, int] = {}
        for n in notes:
            if not n.is_archived:
                by_category[n.category] = by_category.get(n.category, 0) + 1
        return {
            "total_notes": len(notes),
            "archived_notes": sum(1 for n in notes if n.is_archived),
            "pinned_notes": sum(1 for n in notes if n.is_pinned),
            "notes_with_embedding": sum(1 for n in notes if n.has_embedding),
            "total_words": sum(words),
            "avg_word_count": (sum(words) / len(words)) if words else 0,
            "by_category": dict(sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)),
        }

    # --- embedding association records ---
    def upsert_embedding_record(self, record: EmbeddingRecord) -> None:
        now = _now()
        with self._tx() as conn:
            conn.execute(
                """
                INSERT INTO embeddings (note_id, text_hash, model, dimension, chunk_index, chunk_count, created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,?)
                ON CONFLICT(note_id) DO UPDATE SET
                    text_hash=excluded.text_hash,
                    model=excluded.model,
                    dimension=excluded.dimension,
                    chunk_index=excluded.chunk_index,
                    chunk_count=excluded.chunk_count,
                    updated_at=excluded.updated_at
                """,
                (
                    record.note_id,
                    record.text_hash,
                    record.model,
                    record.dimension,
                    record.chunk_index,
                    record.chunk_count,
                    now,
                    now,
                ),
            )

    def get_embedding_record(self, note_id: str) -> Optional[EmbeddingRecord]:
        with self._tx() as conn:
            row = conn.execute("SELECT * FROM embeddings WHERE note_id=?", (note_id,)).fetchone()
        return _row_to_record(row) if row else None

    def delete_embedding_record(self, note_id: str) -> bool:
        with self._tx() as conn:
            cur = conn.execute("DELETE FROM embeddings WHERE note_id=?", (note_id,))
            return cur.rowcount > 0

    def prune_embedding_records(self) -> int:
        with self._tx() as conn:
            cur = conn.execute("DELETE FROM embeddings WHERE note_id NOT IN (SELECT id FROM notes)")
            return cur.rowcount
