"""Bounded background worker pool for embedding jobs.

Jobs are note IDs. ``enqueue`` never blocks the caller: when the queue is full
the job is dropped and logged (the note stays without a fresh embedding until
the next edit or a reindex). ``shutdown(wait=True)`` lets the workers finish
everything already queued before they exit.
"""
from __future__ import annotations

import queue
import threading
from typing import Callable, List

from .logging import get_logger

logger = get_logger("notes_rag.worker")

_STOP = object()


class EmbeddingWorkerPool:
    def __init__(self, handler: Callable[[str], object], workers: int = 2, queue_size: int = 256, name: str = "embed") -> None:
        self._handler = handler
        self._worker_count = max(1, int(workers))
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=max(1, int(queue_size)))
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._name = name

    @property
    def running(self) -> bool:
        return bool(self._threads)

    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        with self._lock:
            if self._threads:
                return
            for i in range(self._worker_count):
                t = threading.Thread(target=self._run, name=f"{self._name}-worker-{i}", daemon=True)
                t.start()
                self._threads.append(t)
        logger.debug("Worker pool started | workers=%d | queue_size=%d", self._worker_count, self._queue.maxsize)

    def enqueue(self, note_id: str) -> bool:
        if not self._threads:
            self.start()
        try:
            self._queue.put_nowait(note_id)
        except queue.Full:
            logger.error("Embedding queue full, job dropped | note_id=%s | queue_size=%d", note_id, self._queue.maxsize)
            return False
        return True

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            threads, self._threads = self._threads, []
        if not threads:
            return
        if wait:
            self._queue.join()
        else:
            dropped = 0
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
                self._queue.task_done()
                dropped += 1
            if dropped:
                logger.warning("Worker pool shut down with pending jobs discarded | dropped=%d", dropped)
        for _ in threads:
            self._queue.put(_STOP)
        if wait:
            for t in threads:
                t.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._handler(str(item))
            except Exception:
                logger.exception("Embedding job crashed | note_id=%s", item)
            finally:
                self._queue.task_done()
