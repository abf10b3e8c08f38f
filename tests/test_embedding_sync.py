"""
Tests for the embedding pipeline: per-note indexing, deletion cleanup, batched reindex
and the background worker pool.
"""

import threading
from unittest.mock import Mock

import pytest

from notes_rag.application.use_cases.sync_embeddings import EmbeddingSyncUseCase, text_hash
from notes_rag.domain.errors import PersistenceError, ValidationError
from notes_rag.domain.models import EmbeddingRecord
from notes_rag.infrastructure.worker import EmbeddingWorkerPool


@pytest.fixture
def embeddings(keyed_embeddings):
    return keyed_embeddings({"alpha": [1.0, 0.0, 0.0], "beta": [0.0, 1.0, 0.0]})


@pytest.fixture
def sync(note_repo, embeddings, vector_store):
    return EmbeddingSyncUseCase(note_repo, embeddings, vector_store, batch_size=10)


@pytest.mark.unit
class TestIndexNote:
    def test_success_updates_all_three_stores(self, sync, note_repo, vector_store, make_note):
        make_note("n1", "alpha", category="Work")

        assert sync.index_note("n1") is True

        record = note_repo.get_embedding_record("n1")
        assert record.text_hash == text_hash("alpha")
        assert record.model == "keyed-test"
        assert record.dimension == 3
        assert vector_store.get_vector("n1") == [1.0, 0.0, 0.0]
        assert vector_store.get_metadata("n1").category == "Work"
        assert note_repo.find_by_id("n1").has_embedding is True

    def test_failure_leaves_flag_untouched(self, sync, note_repo, vector_store, make_note):
        make_note("n1", "no vector for this")

        assert sync.index_note("n1") is False

        assert note_repo.find_by_id("n1").has_embedding is False
        assert note_repo.get_embedding_record("n1") is None
        assert vector_store.get_vector("n1") is None

    def test_missing_note_is_skipped(self, sync, embeddings):
        assert sync.index_note("ghost") is False
        assert embeddings.calls == []

    def test_uses_latest_content(self, sync, note_repo, vector_store, make_note):
        note = make_note("n1", "alpha")
        note.content = "beta"
        note_repo.update(note)

        sync.index_note("n1")

        assert vector_store.get_vector("n1") == [0.0, 1.0, 0.0]

    def test_schedule_runs_inline_without_worker(self, sync, note_repo, make_note):
        make_note("n1", "alpha")
        assert sync.schedule("n1") is True
        assert note_repo.find_by_id("n1").has_embedding is True

    def test_schedule_enqueues_with_worker(self, sync):
        worker = Mock()
        worker.enqueue.return_value = True
        sync.attach_worker(worker)

        assert sync.schedule("n1") is True
        worker.enqueue.assert_called_once_with("n1")


@pytest.mark.unit
class TestRemoveNote:
    def test_removes_vector_and_record(self, sync, note_repo, vector_store, make_note):
        make_note("n1", "alpha")
        sync.index_note("n1")

        sync.remove_note("n1")

        assert vector_store.get_vector("n1") is None
        assert note_repo.get_embedding_record("n1") is None

    def test_store_failure_is_logged_not_raised(self, note_repo, embeddings, make_note):
        store = Mock()
        store.remove_vector.side_effect = PersistenceError("disk full")
        sync = EmbeddingSyncUseCase(note_repo, embeddings, store)
        make_note("n1", "alpha")

        sync.remove_note("n1")

        store.remove_vector.assert_called_once_with("n1")


@pytest.mark.integration
class TestReindex:
    def test_twenty_five_notes_three_failures(self, note_repo, vector_store, make_note, keyed_embeddings):
        vectors = {}
        failing = set()
        for i in range(25):
            text = f"note body {i}"
            make_note(f"n{i:02d}", text)
            vectors[text] = [1.0, float(i), 0.5]
            if i in (3, 11, 19):
                failing.add(text)
        emb = keyed_embeddings(vectors, fail_on=failing)
        sync = EmbeddingSyncUseCase(note_repo, emb, vector_store, batch_size=10)

        report = sync.reindex_all()

        assert (report.total, report.processed, report.errors) == (25, 22, 3)
        assert vector_store.count() == 22
        records = [note_repo.get_embedding_record(n.id) for n in note_repo.iter_all()]
        assert sum(1 for r in records if r is not None) == 22
        flags = [n.has_embedding for n in note_repo.iter_all()]
        assert flags.count(True) == 22

    def test_reindex_clears_stale_vectors_and_records(self, sync, note_repo, vector_store, make_note):
        make_note("n1", "alpha")
        vector_store.add_vector("orphan", [0.0, 0.0, 1.0])
        note_repo.upsert_embedding_record(EmbeddingRecord(note_id="orphan", text_hash="x", model="m", dimension=3))

        report = sync.reindex_all(batch_size=2)

        assert report.processed == 1
        assert vector_store.ids() == ["n1"]
        assert note_repo.get_embedding_record("orphan") is None

    def test_failed_note_loses_stale_state(self, sync, note_repo, vector_store, make_note):
        note = make_note("n1", "alpha")
        sync.index_note("n1")
        note.content = "unknown now"
        note_repo.update(note)

        report = sync.reindex_all()

        assert report.errors == 1
        assert note_repo.find_by_id("n1").has_embedding is False
        assert note_repo.get_embedding_record("n1") is None

    def test_empty_database(self, sync):
        report = sync.reindex_all()
        assert (report.total, report.processed, report.errors) == (0, 0, 0)

    def test_invalid_batch_size(self, sync):
        with pytest.raises(ValidationError):
            sync.reindex_all(batch_size=0)


@pytest.mark.unit
class TestWorkerPool:
    def test_drains_on_shutdown(self):
        seen = []
        lock = threading.Lock()

        def handler(note_id):
            with lock:
                seen.append(note_id)

        pool = EmbeddingWorkerPool(handler, workers=2, queue_size=50)
        pool.start()
        for i in range(20):
            assert pool.enqueue(f"n{i}") is True
        pool.shutdown(wait=True)

        assert sorted(seen) == sorted(f"n{i}" for i in range(20))
        assert not pool.running

    def test_drops_when_full(self):
        gate = threading.Event()
        pool = EmbeddingWorkerPool(lambda _: gate.wait(5), workers=1, queue_size=1)
        pool.start()
        pool.enqueue("first")
        accepted = [pool.enqueue(f"n{i}") for i in range(5)]
        gate.set()
        pool.shutdown(wait=True)

        assert accepted.count(False) >= 3

    def test_pending_counts_queued_jobs(self):
        started = threading.Event()
        gate = threading.Event()

        def handler(_):
            started.set()
            gate.wait(5)

        pool = EmbeddingWorkerPool(handler, workers=1, queue_size=10)
        pool.enqueue("busy")
        assert started.wait(5)
        pool.enqueue("n1")
        pool.enqueue("n2")

        assert pool.pending() == 2
        gate.set()
        pool.shutdown(wait=True)
        assert pool.pending() == 0

    def test_handler_errors_do_not_kill_worker(self):
        seen = []

        def handler(note_id):
            if note_id == "bad":
                raise RuntimeError("boom")
            seen.append(note_id)

        pool = EmbeddingWorkerPool(handler, workers=1, queue_size=10)
        pool.enqueue("bad")
        pool.enqueue("good")
        pool.shutdown(wait=True)

        assert seen == ["good"]

    def test_background_pipeline_sets_flag(self, sync, note_repo, make_note):
        make_note("n1", "alpha")
        make_note("n2", "beta")
        pool = EmbeddingWorkerPool(sync.index_note, workers=2, queue_size=10)
        sync.attach_worker(pool)

        sync.schedule("n1")
        sync.schedule("n2")
        pool.shutdown(wait=True)

        assert note_repo.find_by_id("n1").has_embedding is True
        assert note_repo.find_by_id("n2").has_embedding is True
