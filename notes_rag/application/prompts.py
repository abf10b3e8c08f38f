"""Chat prompt builders for the assistant tasks."""
from __future__ import annotations

import json
from typing import List, Sequence

from ..domain.models import ChatMessage, Note

SUMMARY_LENGTHS = {
    "short": "2-3 sentences",
    "medium": "1-2 paragraphs",
    "long": "3-4 paragraphs with key details",
}

EXPLAIN_STYLES = {
    "simple": "Explain this in simple terms that anyone can understand. Use everyday language and analogies.",
    "detailed": "Provide a detailed explanation with examples and context.",
    "technical": "Give a technical explanation suitable for experts in the field.",
}

CHAT_HISTORY_TURNS = 10

_QA_SYSTEM = (
    "You are an assistant helping users with their personal notes. "
    "The user's notes are provided as context. Use them to give accurate, helpful answers. "
    "If the answer cannot be found in the notes, say so clearly. Be concise."
)


def _context_block(notes: Sequence[Note]) -> str:
    if not notes:
        return "No relevant notes found."
    return "\n\n---\n\n".join(
        f"[Note {i + 1}] Title: {n.title}\nContent: {n.content}" for i, n in enumerate(notes)
    )


def qa_messages(query: str, notes: Sequence[Note]) -> List[ChatMessage]:
    user = (
        f"Context from user's notes:\n{_context_block(notes)}\n\n---\n\n"
        f"User's Question: {query}\n\n"
        "Please provide a helpful response based on the context from the user's notes."
    )
    return [ChatMessage("system", _QA_SYSTEM), ChatMessage("user", user)]


def chat_messages(history: Sequence[ChatMessage], message: str, notes: Sequence[Note]) -> List[ChatMessage]:
    system = "You are a helpful assistant that helps users manage and understand their notes. Be conversational and concise."
    if notes:
        lines = "\n".join(f"- {n.title}: {n.preview(200)}" for n in notes)
        system += f"\n\nRelevant notes context:\n{lines}"
    turns = [ChatMessage(m.role, str(m.content)) for m in list(history)[-CHAT_HISTORY_TURNS:] if m.role in ("user", "assistant")]
    return [ChatMessage("system", system), *turns, ChatMessage("user", message)]


def summary_messages(content: str, length: str) -> List[ChatMessage]:
    guide = SUMMARY_LENGTHS.get(length, SUMMARY_LENGTHS["medium"])
    return [
        ChatMessage("system", "You are a skilled summarizer. Create clear, concise summaries that capture the key points."),
        ChatMessage("user", f"Please summarize the following content in {guide}:\n\n{content}\n\nSummary:"),
    ]


def title_messages(content: str) -> List[ChatMessage]:
    return [
        ChatMessage(
            "system",
            "You generate clear, descriptive titles. Always respond with valid JSON only, no additional text.",
        ),
        ChatMessage(
            "user",
            "Generate a concise, descriptive title for the following content. Also provide 2 alternative titles.\n\n"
            f"Content:\n{content[:2000]}\n\n"
            'Respond in this exact JSON format:\n{"title": "Main title here", "alternatives": ["Alternative 1", "Alternative 2"]}',
        ),
    ]


def key_points_messages(content: str) -> List[ChatMessage]:
    return [
        ChatMessage("system", "You are an analytical assistant. Extract key points as a JSON array of strings."),
        ChatMessage(
            "user",
            "Extract the main key points from the following content. Return ONLY a JSON array of strings.\n\n"
            f"Content:\n{content}",
        ),
    ]


def explain_messages(content: str, style: str) -> List[ChatMessage]:
    guide = EXPLAIN_STYLES.get(style, EXPLAIN_STYLES["simple"])
    return [
        ChatMessage("system", "You are a knowledgeable teacher who excels at explaining complex topics clearly."),
        ChatMessage("user", f"{guide}\n\nContent to explain:\n{content}"),
    ]


def insights_messages(notes: Sequence[Note]) -> List[ChatMessage]:
    overview = [
        {"title": n.title, "category": n.category, "tags": list(n.tags), "word_count": n.word_count}
        for n in notes
    ]
    return [
        ChatMessage("system", "You are an analytical assistant. Analyze notes and provide insights in JSON format."),
        ChatMessage(
            "user",
            "Analyze these notes and provide insights. Return ONLY valid JSON.\n\n"
            f"Notes: {json.dumps(overview)}\n\n"
            "Return format:\n"
            '{"total_notes": number, "top_categories": ["category1", "category2"], '
            '"suggested_tags": ["tag1", "tag2"], "content_trends": "brief description of trends", '
            '"recommendations": ["recommendation 1", "recommendation 2"]}',
        ),
    ]
