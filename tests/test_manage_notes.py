"""
Tests for note management: CRUD, embedding hooks, toggles and validation.
"""

from unittest.mock import Mock

import pytest

from notes_rag.application.dto import CreateNoteRequest, ListNotesRequest, UpdateNoteRequest
from notes_rag.application.use_cases.manage_notes import ManageNotesUseCase
from notes_rag.application.use_cases.sync_embeddings import EmbeddingSyncUseCase
from notes_rag.domain.errors import NoteNotFound, PersistenceError, ValidationError
from notes_rag.domain.models import EmbeddingRecord, Note


@pytest.fixture
def sync():
    return Mock()


@pytest.fixture
def manage(note_repo, sync):
    return ManageNotesUseCase(note_repo, sync)


@pytest.mark.unit
class TestCreate:
    def test_defaults_and_schedule(self, manage, sync, note_repo):
        note = manage.create(CreateNoteRequest(content="  Buy milk and eggs  ", tags=[" food ", "food", ""]))

        assert note.title == "Untitled Note"
        assert note.category == "General"
        assert note.content == "Buy milk and eggs"
        assert note.tags == ["food"]
        assert len(note.id) == 32
        assert note_repo.find_by_id(note.id) is not None
        sync.schedule.assert_called_once_with(note.id)

    def test_derived_fields(self, manage):
        note = manage.create(CreateNoteRequest(content="word " * 450))
        assert note.word_count == 450
        assert note.reading_time == 3
        assert note.preview().endswith("...")

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_rejects_empty_content(self, manage, sync, content):
        with pytest.raises(ValidationError):
            manage.create(CreateNoteRequest(content=content))
        sync.schedule.assert_not_called()

    def test_rejects_long_title(self, manage):
        with pytest.raises(ValidationError):
            manage.create(CreateNoteRequest(content="x", title="t" * 201))

    def test_write_succeeds_when_scheduling_fails_inline(self, note_repo):
        sync = Mock()
        sync.schedule.return_value = False
        note = ManageNotesUseCase(note_repo, sync).create(CreateNoteRequest(content="text"))
        assert note_repo.find_by_id(note.id).has_embedding is False


@pytest.mark.unit
class TestUpdate:
    def test_content_change_reschedules(self, manage, sync):
        note = manage.create(CreateNoteRequest(content="first"))
        sync.reset_mock()

        updated = manage.update(UpdateNoteRequest(note_id=note.id, content="second"))

        assert updated.content == "second"
        sync.schedule.assert_called_once_with(note.id)

    def test_same_content_does_not_reschedule(self, manage, sync):
        note = manage.create(CreateNoteRequest(content="first"))
        sync.reset_mock()

        manage.update(UpdateNoteRequest(note_id=note.id, content="first", title="New title", tags=["a"]))

        sync.schedule.assert_not_called()

    def test_category_change_reschedules(self, manage, sync):
        note = manage.create(CreateNoteRequest(content="first"))
        sync.reset_mock()
        manage.update(UpdateNoteRequest(note_id=note.id, category="Work"))
        sync.schedule.assert_called_once_with(note.id)

    def test_unknown_note(self, manage):
        with pytest.raises(NoteNotFound):
            manage.update(UpdateNoteRequest(note_id="missing", content="x"))


@pytest.mark.unit
class TestDeleteAndToggles:
    def test_delete_cleans_embeddings(self, manage, sync, note_repo):
        note = manage.create(CreateNoteRequest(content="bye"))

        manage.delete(note.id)

        sync.remove_note.assert_called_once_with(note.id)
        assert note_repo.find_by_id(note.id) is None

    def test_delete_proceeds_when_vector_removal_fails(self, note_repo):
        store = Mock()
        store.remove_vector.side_effect = PersistenceError("disk full")
        sync = EmbeddingSyncUseCase(note_repo, Mock(), store)
        manage = ManageNotesUseCase(note_repo, sync)
        note = note_repo.create(Note(id="n1", content="bye"))
        note_repo.upsert_embedding_record(EmbeddingRecord(note_id="n1", text_hash="h", model="m", dimension=3))

        manage.delete(note.id)

        store.remove_vector.assert_called_once_with("n1")
        assert note_repo.find_by_id("n1") is None
        assert note_repo.get_embedding_record("n1") is None

    def test_delete_unknown(self, manage):
        with pytest.raises(NoteNotFound):
            manage.delete("missing")

    def test_pin_and_archive_toggle(self, manage):
        note = manage.create(CreateNoteRequest(content="x"))
        assert manage.toggle_pin(note.id).is_pinned is True
        assert manage.toggle_pin(note.id).is_pinned is False
        assert manage.toggle_archive(note.id).is_archived is True
        assert manage.list(ListNotesRequest()) == []
        assert [n.id for n in manage.list(ListNotesRequest(archived=True))] == [note.id]

    def test_list_paging_validation(self, manage):
        with pytest.raises(ValidationError):
            manage.list(ListNotesRequest(page=0))

    def test_tags_and_categories(self, manage):
        manage.create(CreateNoteRequest(content="x", tags=["b", "a"], category="Work"))
        assert manage.tags() == ["a", "b"]
        assert manage.categories() == ["Work"]
        assert manage.stats()["total_notes"] == 1
