"""Extractive stand-ins for generated text.

Used when no generation provider is reachable. Everything here is a pure
function of its inputs: sentences are lifted from the notes and figures are
counted from them, never invented.
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Dict, List, Sequence

from ..domain.models import Note

_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|\n+")
_WORD_RE = re.compile(r"\w+", re.UNICODE)

_SUMMARY_SENTENCES = {"short": 2, "medium": 4, "long": 8}
_KEY_POINTS = 5
_EXPLAIN_SENTENCES = {"simple": 2, "detailed": 4, "technical": 4}
_SUGGESTED_TAGS = 5


def sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_RE.split(text or "") if s.strip()]


def _ranked_sentences(text: str, k: int) -> List[str]:
    """Top ``k`` sentences by summed word frequency, returned in document order."""
    parts = sentences(text)
    if len(parts) <= k:
        return parts
    freq = Counter(w for w in _WORD_RE.findall(text.lower()) if len(w) > 3)
    scored = [
        (sum(freq[w] for w in _WORD_RE.findall(s.lower()) if len(w) > 3), i)
        for i, s in enumerate(parts)
    ]
    keep = sorted(i for _, i in sorted(scored, key=lambda pair: (-pair[0], pair[1]))[:k])
    return [parts[i] for i in keep]


def answer(query: str, notes: Sequence[Note]) -> str:
    if not notes:
        return (
            "I couldn't find any relevant notes to answer your question. "
            "Try adding more notes or rephrasing your query."
        )
    top = notes[0]
    excerpt = " ".join(sentences(top.content)[:2])
    return (
        f'Based on your notes, I found {len(notes)} relevant '
        f'{"entry" if len(notes) == 1 else "entries"}. The most relevant note "{top.title}" says: {excerpt}'
    )


def chat_reply(message: str, notes: Sequence[Note]) -> str:
    if not notes:
        return "I don't have any notes related to that yet."
    lines = "\n".join(f"- {n.title}: {n.preview(120)}" for n in notes)
    return f"Here is what I found in your notes:\n{lines}"


def summary(content: str, length: str = "medium") -> str:
    return " ".join(_ranked_sentences(content, _SUMMARY_SENTENCES.get(length, 4)))


def title(content: str) -> Dict[str, object]:
    first = next((line.strip() for line in (content or "").splitlines() if line.strip()), "")
    main = first[:50] or "Untitled Note"
    words = _WORD_RE.findall(content or "")
    alternatives = [" ".join(words[:5]).capitalize()] if len(words) > 1 else []
    return {"title": main, "alternatives": [a for a in alternatives if a and a != main]}


def key_points(content: str) -> List[str]:
    return _ranked_sentences(content, _KEY_POINTS)


def explanation(content: str, style: str = "simple") -> str:
    picked = _ranked_sentences(content, _EXPLAIN_SENTENCES.get(style, 2))
    return "In short: " + " ".join(picked) if picked else ""


def insights(notes: Sequence[Note]) -> Dict[str, object]:
    """Collection overview computed from counts; no claims beyond what the notes contain."""
    categories = Counter(n.category for n in notes)
    used_tags = {t.lower() for n in notes for t in n.tags}
    words = Counter(
        w
        for n in notes
        for w in _WORD_RE.findall(n.content.lower())
        if len(w) > 3 and not w.isdigit() and w not in used_tags
    )
    top = [c for c, _ in categories.most_common(3)]
    avg = round(sum(n.word_count for n in notes) / len(notes)) if notes else 0

    recommendations: List[str] = []
    untagged = sum(1 for n in notes if not n.tags)
    if untagged:
        recommendations.append(f"Add tags to {untagged} untagged note{'s' if untagged != 1 else ''}")
    unembedded = sum(1 for n in notes if not n.has_embedding)
    if unembedded:
        recommendations.append(f"Run a reindex: {unembedded} note{'s' if unembedded != 1 else ''} lack an embedding")
    if len(notes) > 1 and len(categories) == 1:
        recommendations.append("Use categories to separate topics")
    if not recommendations:
        recommendations.append("Keep notes tagged and categorized as the collection grows")

    return {
        "total_notes": len(notes),
        "top_categories": top,
        "suggested_tags": [w for w, _ in words.most_common(_SUGGESTED_TAGS)],
        "content_trends": f"{len(notes)} notes averaging {avg} words; most are in {top[0] if top else 'no category'}.",
        "recommendations": recommendations,
    }
