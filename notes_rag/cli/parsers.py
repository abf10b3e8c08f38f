from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Personal notes with semantic, keyword and hybrid retrieval")
    ap.add_argument("--db", default=None, help="SQLite database path; defaults to $NOTES_DB_PATH")
    ap.add_argument("--store", default=None, help="Vector store directory; defaults to $VECTOR_STORE_PATH")
    sub = ap.add_subparsers(dest="cmd", required=True)

    # Notes
    add = sub.add_parser("add", help="Create a note")
    add.add_argument("--content", help="Note body")
    add.add_argument("--file", help="Read the note body from a file")
    _note_fields(add)
    add.add_argument("--pin", action="store_true")

    ed = sub.add_parser("edit", help="Update fields of a note")
    ed.add_argument("id")
    ed.add_argument("--content")
    _note_fields(ed)

    for name in ("show", "delete", "pin", "archive"):
        p = sub.add_parser(name)
        p.add_argument("id")

    ls = sub.add_parser("list", help="List notes, pinned first then most recently updated")
    ls.add_argument("--category")
    ls.add_argument("--tag")
    ls.add_argument("--pinned", action="store_true", default=None)
    ls.add_argument("--archived", action="store_true")
    ls.add_argument("--page", type=int, default=1)
    ls.add_argument("--limit", type=int, default=20)

    sub.add_parser("tags")
    sub.add_parser("categories")
    sub.add_parser("stats")

    # Search
    se = sub.add_parser("search")
    se.add_argument("--q", required=True)
    se.add_argument("--mode", choices=["semantic", "keyword", "hybrid"], default="hybrid")
    se.add_argument("--limit", type=int, default=10)
    se.add_argument("--category")
    se.add_argument("--weight", type=float, default=None, help="Semantic share for hybrid mode, 0..1")

    sg = sub.add_parser("suggest")
    sg.add_argument("--q", required=True)
    sg.add_argument("--limit", type=int, default=5)

    rel = sub.add_parser("related")
    rel.add_argument("id")
    rel.add_argument("--limit", type=int, default=5)

    # Assistant
    ask = sub.add_parser("ask")
    ask.add_argument("--q", required=True)
    ask.add_argument("--k", type=int, default=None)

    ch = sub.add_parser("chat")
    ch.add_argument("--message", required=True)
    ch.add_argument("--history", help="Path to a JSON file: [{\"role\": ..., \"content\": ...}, ...]")
    ch.add_argument("--k", type=int, default=None)

    sm = sub.add_parser("summarize")
    sm.add_argument("id")
    sm.add_argument("--length", choices=["short", "medium", "long"], default="medium")

    for name in ("title", "key-points"):
        p = sub.add_parser(name)
        p.add_argument("id")

    ex = sub.add_parser("explain", help="Explain a piece of text at the chosen level")
    exg = ex.add_mutually_exclusive_group(required=True)
    exg.add_argument("--content")
    exg.add_argument("--file", help="Read the text to explain from this file")
    ex.add_argument("--style", choices=["simple", "detailed", "technical"], default="simple")

    sub.add_parser("insights", help="Overview and recommendations across all active notes")

    ri = sub.add_parser("reindex", help="Rebuild every embedding from the note database")
    ri.add_argument("--batch-size", type=int, default=None)

    return ap


def _note_fields(p: argparse.ArgumentParser) -> None:
    p.add_argument("--title")
    p.add_argument("--tag", action="append", default=None, help="Tag label; can repeat")
    p.add_argument("--category")
