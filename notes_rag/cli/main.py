from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..application.dto import (
    AskRequest,
    AssistantResponse,
    ChatRequest,
    CreateNoteRequest,
    ListNotesRequest,
    SearchRequest,
    UpdateNoteRequest,
)
from ..bootstrap import Container, build_container
from ..domain.errors import NoteNotFound, ValidationError
from ..domain.models import ChatMessage
from ..infrastructure.logging import get_logger
from .parsers import build_parser

logger = get_logger("notes_rag.cli")


def _emit(payload: Dict[str, Any]) -> int:
    print(json.dumps({"status": "ok", **payload}, indent=2))
    return 0


def _assistant_payload(resp: AssistantResponse) -> Dict[str, Any]:
    return {
        "answer": resp.content,
        "sources": [s.to_dict() for s in resp.sources],
        "tokens_used": resp.tokens_used,
        "degraded": resp.degraded,
    }


def _read_content(ns) -> Optional[str]:
    if getattr(ns, "file", None):
        return Path(ns.file).read_text(encoding="utf-8")
    return ns.content


def _load_history(path: Optional[str]) -> List[ChatMessage]:
    if not path:
        return []
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"History file is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise ValidationError("History file must contain a JSON array of messages")
    return [
        ChatMessage(role=str(m.get("role", "user")), content=str(m.get("content", "")))
        for m in raw
        if isinstance(m, dict)
    ]


def run(argv: Optional[Sequence[str]] = None, container: Optional[Container] = None) -> int:
    ap = build_parser()
    ns = ap.parse_args(list(argv or []))

    try:
        c = container or build_container(db_path=ns.db, store_path=ns.store)
        c.init()
    except (ValidationError, NoteNotFound) as ex:
        print(json.dumps({"status": "error", "error": f"{type(ex).__name__}: {ex}"}))
        return 2
    except Exception as ex:
        print(json.dumps({"status": "error", "error": f"{type(ex).__name__}: {ex}"}))
        return 3

    try:
        return dispatch_commands(ns, c)
    except (ValidationError, NoteNotFound) as ex:
        print(json.dumps({"status": "error", "error": f"{type(ex).__name__}: {ex}"}))
        return 2
    except Exception as ex:  # keep CLI concise and user-friendly
        logger.debug("Command failed | cmd=%s", ns.cmd, exc_info=True)
        print(json.dumps({"status": "error", "error": f"{type(ex).__name__}: {ex}"}))
        return 3
    finally:
        c.shutdown(wait=True)


def dispatch_commands(ns, c: Container) -> int:
    """
    Dispatches CLI commands to the notes use cases.

    Commands:
    - add, edit, show, list, delete, pin, archive, tags, categories, stats: note management
    - search (semantic | keyword | hybrid), suggest, related: retrieval
    - ask, chat, summarize, title, key-points, explain, insights: assistant tasks
    - reindex: rebuild the vector index and association records from the database
    """
    cmd = ns.cmd
    if cmd == "add":
        note = c.manage.create(
            CreateNoteRequest(
                content=_read_content(ns) or "",
                title=ns.title,
                tags=list(ns.tag or []),
                category=ns.category,
                is_pinned=ns.pin,
            )
        )
        return _emit({"note": note.to_dict()})
    if cmd == "edit":
        note = c.manage.update(
            UpdateNoteRequest(note_id=ns.id, content=ns.content, title=ns.title, tags=ns.tag, category=ns.category)
        )
        return _emit({"note": note.to_dict()})
    if cmd == "show":
        return _emit({"note": c.manage.get(ns.id).to_dict()})
    if cmd == "delete":
        c.manage.delete(ns.id)
        return _emit({"deleted": ns.id})
    if cmd == "pin":
        note = c.manage.toggle_pin(ns.id)
        return _emit({"id": note.id, "is_pinned": note.is_pinned})
    if cmd == "archive":
        note = c.manage.toggle_archive(ns.id)
        return _emit({"id": note.id, "is_archived": note.is_archived})
    if cmd == "list":
        notes = c.manage.list(
            ListNotesRequest(
                category=ns.category,
                tag=ns.tag,
                pinned=ns.pinned,
                archived=ns.archived,
                page=ns.page,
                limit=ns.limit,
            )
        )
        return _emit({"page": ns.page, "count": len(notes), "notes": [_summary_row(n) for n in notes]})
    if cmd == "tags":
        return _emit({"tags": c.manage.tags()})
    if cmd == "categories":
        return _emit({"categories": c.manage.categories()})
    if cmd == "stats":
        return _emit(
            {
                "notes": c.manage.stats(),
                "vector_store": c.store.stats(),
                "embedding": {"model": c.embeddings.model_name(), "queue_pending": c.worker.pending()},
            }
        )

    if cmd == "search":
        results = c.search.execute(
            SearchRequest(query=ns.q, mode=ns.mode, limit=ns.limit, category=ns.category, weight=ns.weight)
        )
        logger.info("Search request | mode=%s | limit=%d | results=%d", ns.mode, ns.limit, len(results))
        return _emit({"mode": ns.mode, "query": ns.q, "results": [r.to_dict() for r in results]})
    if cmd == "suggest":
        return _emit({"suggestions": c.search.suggest(ns.q, limit=ns.limit)})
    if cmd == "related":
        related = c.retrieve.related(ns.id, limit=ns.limit)
        return _emit({"id": ns.id, "related": [{**_summary_row(s.note), "score": round(s.score, 6)} for s in related]})

    if cmd == "ask":
        return _emit(_assistant_payload(c.assistant.ask(AskRequest(query=ns.q, top_k=ns.k))))
    if cmd == "chat":
        resp = c.assistant.chat(ChatRequest(message=ns.message, history=_load_history(ns.history), top_k=ns.k))
        return _emit(_assistant_payload(resp))
    if cmd == "summarize":
        gen = c.assistant.summarize(ns.id, length=ns.length)
        return _emit({"id": ns.id, "summary": gen.content, "tokens_used": gen.tokens_used, "degraded": gen.degraded})
    if cmd == "title":
        return _emit({"id": ns.id, **c.assistant.title(ns.id)})
    if cmd == "key-points":
        return _emit({"id": ns.id, **c.assistant.key_points(ns.id)})
    if cmd == "explain":
        gen = c.assistant.explain(_read_content(ns) or "", style=ns.style)
        return _emit({"explanation": gen.content, "style": ns.style, "tokens_used": gen.tokens_used, "degraded": gen.degraded})
    if cmd == "insights":
        return _emit(c.assistant.insights())

    if cmd == "reindex":
        report = c.sync.reindex_all(batch_size=ns.batch_size)
        return _emit({"total": report.total, "processed": report.processed, "errors": report.errors})

    print(json.dumps({"status": "error", "error": f"Unknown command: {cmd}"}))
    return 2


def _summary_row(note) -> Dict[str, Any]:
    return {
        "id": note.id,
        "title": note.title,
        "preview": note.preview(),
        "tags": list(note.tags),
        "category": note.category,
        "is_pinned": note.is_pinned,
        "has_embedding": note.has_embedding,
        "updated_at": note.updated_at,
    }


def main() -> int:
    return run(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
