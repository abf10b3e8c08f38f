from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from ..dto import CreateNoteRequest, ListNotesRequest, UpdateNoteRequest
from .sync_embeddings import EmbeddingSyncUseCase
from ...domain.errors import NoteNotFound, ValidationError
from ...domain.interfaces import NoteRepository
from ...domain.models import Note
from ...infrastructure.logging import get_logger

logger = get_logger("notes_rag.notes")

MAX_TITLE_CHARS = 200
MAX_CONTENT_CHARS = 50000
MAX_TAG_CHARS = 50
MAX_CATEGORY_CHARS = 100


def _clean_content(content: Optional[str]) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Note content must be a non-empty string")
    content = content.strip()
    if len(content) > MAX_CONTENT_CHARS:
        raise ValidationError(f"Content cannot exceed {MAX_CONTENT_CHARS} characters")
    return content


def _clean_title(title: Optional[str]) -> str:
    title = (title or "").strip() or "Untitled Note"
    if len(title) > MAX_TITLE_CHARS:
        raise ValidationError(f"Title cannot exceed {MAX_TITLE_CHARS} characters")
    return title


def _clean_category(category: Optional[str]) -> str:
    category = (category or "").strip() or "General"
    if len(category) > MAX_CATEGORY_CHARS:
        raise ValidationError(f"Category cannot exceed {MAX_CATEGORY_CHARS} characters")
    return category


def _clean_tags(tags: Optional[List[str]]) -> List[str]:
    out: List[str] = []
    for t in tags or []:
        t = str(t).strip()
        if not t or t in out:
            continue
        if len(t) > MAX_TAG_CHARS:
            raise ValidationError(f"Tag cannot exceed {MAX_TAG_CHARS} characters: {t[:20]}...")
        out.append(t)
    return out


class ManageNotesUseCase:
    """Use-case: note CRUD with the embedding pipeline hooked in.

    Writes return as soon as the note is stored; embedding work is handed to
    ``EmbeddingSyncUseCase.schedule`` and never affects the write's outcome.
    """

    def __init__(self, notes: NoteRepository, sync: EmbeddingSyncUseCase) -> None:
        self._notes = notes
        self._sync = sync

    def create(self, req: CreateNoteRequest) -> Note:
        note = Note(
            id=uuid.uuid4().hex,
            content=_clean_content(req.content),
            title=_clean_title(req.title),
            tags=_clean_tags(req.tags),
            category=_clean_category(req.category),
            is_pinned=bool(req.is_pinned),
        )
        self._notes.create(note)
        logger.info("Note created | id=%s | words=%d", note.id, note.word_count)
        self._sync.schedule(note.id)
        return note

    def get(self, note_id: str) -> Note:
        note = self._notes.find_by_id(note_id)
        if note is None:
            raise NoteNotFound(note_id)
        return note

    def update(self, req: UpdateNoteRequest) -> Note:
        note = self.get(req.note_id)
        reembed = False
        if req.content is not None:
            content = _clean_content(req.content)
            reembed = content != note.content
            note.content = content
        if req.title is not None:
            note.title = _clean_title(req.title)
        if req.tags is not None:
            note.tags = _clean_tags(req.tags)
        if req.category is not None:
            category = _clean_category(req.category)
            reembed = reembed or category != note.category
            note.category = category
        if req.is_pinned is not None:
            note.is_pinned = bool(req.is_pinned)
        if req.is_archived is not None:
            note.is_archived = bool(req.is_archived)
        self._notes.update(note)
        logger.info("Note updated | id=%s | reembed=%s", note.id, reembed)
        if reembed:
            self._sync.schedule(note.id)
        return note

    def delete(self, note_id: str) -> None:
        self.get(note_id)
        self._sync.remove_note(note_id)
        self._notes.delete(note_id)
        logger.info("Note deleted | id=%s", note_id)

    def list(self, req: ListNotesRequest) -> List[Note]:
        if req.page < 1 or req.limit < 1:
            raise ValidationError("page and limit must be positive")
        return self._notes.list_notes(
            category=req.category,
            tag=req.tag,
            pinned=req.pinned,
            archived=req.archived,
            limit=req.limit,
            offset=(req.page - 1) * req.limit,
        )

    def toggle_pin(self, note_id: str) -> Note:
        note = self.get(note_id)
        note.is_pinned = not note.is_pinned
        return self._notes.update(note)

    def toggle_archive(self, note_id: str) -> Note:
        note = self.get(note_id)
        note.is_archived = not note.is_archived
        return self._notes.update(note)

    def tags(self) -> List[str]:
        return self._notes.distinct_tags()

    def categories(self) -> List[str]:
        return self._notes.distinct_categories()

    def stats(self) -> Dict[str, object]:
        return self._notes.stats()
