from __future__ import annotations

import json
import re
from typing import Callable, Dict, List, Optional

from .. import fallback_text, prompts
from ..dto import AskRequest, AssistantResponse, ChatRequest, RetrieveRequest, SearchResult
from .retrieve_notes import RetrieveNotesUseCase
from ...domain.errors import NoteNotFound, UpstreamUnavailable, ValidationError
from ...domain.interfaces import NoteRepository, TextGenerator
from ...domain.models import ChatMessage, Generation, Note, ScoredNote
from ...infrastructure.logging import get_logger

logger = get_logger("notes_rag.assistant")

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


class AssistantUseCase:
    """Use-case: RAG question answering, chat and per-note generation tasks.

    Every task has an extractive fallback (see ``fallback_text``) used when no
    generator is configured or the generator raises ``UpstreamUnavailable``;
    such results carry ``degraded=True``.
    """

    def __init__(self, generator: Optional[TextGenerator], retrieve: RetrieveNotesUseCase, notes: NoteRepository) -> None:
        self._gen = generator
        self._retrieve = retrieve
        self._notes = notes

    def ask(self, req: AskRequest) -> AssistantResponse:
        if not isinstance(req.query, str) or not req.query.strip():
            raise ValidationError("Query must be a non-empty string")
        scored = self._retrieve.execute(RetrieveRequest(query=req.query, top_k=req.top_k))
        context = [s.note for s in scored]
        gen = self._generate(
            "qa",
            prompts.qa_messages(req.query, context),
            lambda: fallback_text.answer(req.query, context),
        )
        return _response(gen, scored)

    def chat(self, req: ChatRequest) -> AssistantResponse:
        if not isinstance(req.message, str) or not req.message.strip():
            raise ValidationError("Message must be a non-empty string")
        scored = self._retrieve.execute(RetrieveRequest(query=req.message, top_k=req.top_k))
        context = [s.note for s in scored]
        gen = self._generate(
            "chat",
            prompts.chat_messages(req.history, req.message, context),
            lambda: fallback_text.chat_reply(req.message, context),
        )
        return _response(gen, scored)

    def summarize(self, note_id: str, length: str = "medium") -> Generation:
        """Summarize a note and store the summary on it."""
        if length not in prompts.SUMMARY_LENGTHS:
            raise ValidationError(f"length must be one of {', '.join(prompts.SUMMARY_LENGTHS)}, got {length!r}")
        note = self._note(note_id)
        gen = self._generate(
            "summarize",
            prompts.summary_messages(note.content, length),
            lambda: fallback_text.summary(note.content, length),
            temperature=0.5,
        )
        note.summary = gen.content
        self._notes.update(note)
        return gen

    def title(self, note_id: str) -> Dict[str, object]:
        """Suggest a title for a note; the main suggestion is stored as ``suggested_title``."""
        note = self._note(note_id)
        gen = self._generate(
            "title",
            prompts.title_messages(note.content),
            lambda: json.dumps(fallback_text.title(note.content)),
            temperature=0.8,
        )
        result = _parse_title(gen.content, note.content)
        note.suggested_title = str(result["title"])
        self._notes.update(note)
        result.update({"tokens_used": gen.tokens_used, "degraded": gen.degraded})
        return result

    def key_points(self, note_id: str) -> Dict[str, object]:
        note = self._note(note_id)
        gen = self._generate(
            "key_points",
            prompts.key_points_messages(note.content),
            lambda: json.dumps(fallback_text.key_points(note.content)),
            temperature=0.3,
        )
        return {"key_points": _parse_points(gen.content), "tokens_used": gen.tokens_used, "degraded": gen.degraded}

    def explain(self, content: str, style: str = "simple") -> Generation:
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Content must be a non-empty string")
        if style not in prompts.EXPLAIN_STYLES:
            raise ValidationError(f"style must be one of {', '.join(prompts.EXPLAIN_STYLES)}, got {style!r}")
        return self._generate(
            "explain",
            prompts.explain_messages(content, style),
            lambda: fallback_text.explanation(content, style),
            temperature=0.6,
        )

    def insights(self) -> Dict[str, object]:
        """Collection-level overview of every non-archived note."""
        notes = [n for n in self._notes.iter_all() if not n.is_archived]
        if not notes:
            return {"message": "No notes available for insights", "insights": None, "notes_analyzed": 0}
        gen = self._generate(
            "insights",
            prompts.insights_messages(notes),
            lambda: json.dumps(fallback_text.insights(notes)),
            temperature=0.5,
        )
        return {
            "insights": _parse_insights(gen.content),
            "notes_analyzed": len(notes),
            "tokens_used": gen.tokens_used,
            "degraded": gen.degraded,
        }

    def _note(self, note_id: str) -> Note:
        note = self._notes.find_by_id(note_id)
        if note is None:
            raise NoteNotFound(note_id)
        return note

    def _generate(
        self,
        task: str,
        messages: List[ChatMessage],
        fallback: Callable[[], str],
        temperature: Optional[float] = None,
    ) -> Generation:
        if self._gen is None:
            return Generation(content=fallback(), degraded=True)
        try:
            return self._gen.generate(messages, temperature=temperature)
        except UpstreamUnavailable as exc:
            logger.warning("Generation unavailable, using extractive fallback | task=%s | error=%s", task, exc)
            return Generation(content=fallback(), degraded=True)


def _response(gen: Generation, scored: List[ScoredNote]) -> AssistantResponse:
    return AssistantResponse(
        content=gen.content,
        sources=[SearchResult(note=s.note, score=s.score) for s in scored],
        tokens_used=gen.tokens_used,
        degraded=gen.degraded,
    )


def _parse_title(text: str, content: str) -> Dict[str, object]:
    match = _JSON_OBJECT_RE.search(text or "")
    if match:
        try:
            data = json.loads(match.group(0))
        except ValueError:
            data = None
        if isinstance(data, dict) and str(data.get("title") or "").strip():
            alts = data.get("alternatives")
            return {
                "title": str(data["title"]).strip(),
                "alternatives": [str(a) for a in alts] if isinstance(alts, list) else [],
            }
    title = (text or "").strip().strip('"')[:100]
    return {"title": title or fallback_text.title(content)["title"], "alternatives": []}


def _parse_points(text: str) -> List[str]:
    match = _JSON_ARRAY_RE.search(text or "")
    if match:
        try:
            data = json.loads(match.group(0))
        except ValueError:
            data = None
        if isinstance(data, list):
            return [str(p).strip() for p in data if str(p).strip()]
    return [_BULLET_RE.sub("", line).strip() for line in (text or "").splitlines() if line.strip()]


def _parse_insights(text: str) -> Dict[str, object]:
    match = _JSON_OBJECT_RE.search(text or "")
    if match:
        try:
            data = json.loads(match.group(0))
        except ValueError:
            data = None
        if isinstance(data, dict):
            return data
    logger.warning("Could not parse insights response | length=%d", len(text or ""))
    return {"error": "Could not parse insights"}
