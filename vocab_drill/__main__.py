"""CLI entry point for vocab-drill.

Usage:
  python -m vocab_drill serve [--port PORT] [--host HOST] [--no-auto-import]
  python -m vocab_drill import
  python -m vocab_drill lessons
  python -m vocab_drill stats
"""
from __future__ import annotations

import os
import sys


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "import":
        _import_items()
    elif command == "lessons":
        _lessons()
    elif command == "stats":
        _stats()
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, import, lessons, stats")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _serve(args: list[str]):
    import uvicorn

    if "--no-auto-import" in args:
        os.environ["VOCAB_DRILL_NO_AUTO_IMPORT"] = "1"

    port = int(_parse_flag(args, "--port", "8766"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    print(f"Starting Vocab Drill on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "vocab_drill.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        os.environ.pop("VOCAB_DRILL_NO_AUTO_IMPORT", None)


def _open_db():
    from vocab_drill.config import load_settings
    from vocab_drill.db import Database

    settings = load_settings()
    return settings, Database(settings.db_full_path)


def _import_items():
    from vocab_drill.app import import_item_files

    settings, db = _open_db()
    files = settings.resolved_item_files()
    if not files:
        print(f"No lesson files found in {settings.data_dir}")
    n = import_item_files(db, settings)
    print(f"Imported {n} lessons")
    print(f"Total in DB: {db.get_lesson_count()} lessons, {db.get_item_count()} items")
    db.close()


def _lessons():
    _, db = _open_db()
    lessons = db.get_lessons()
    if not lessons:
        print("No lessons. Run 'import' first.")
    for lesson in lessons:
        print(f"  {lesson['slug']:<30} {lesson['language']:<10} {lesson['item_count']:>4} items")
    db.close()


def _stats():
    _, db = _open_db()
    stats = db.get_stats()
    print(f"Lessons:          {stats['total_lessons']}")
    print(f"Items:            {stats['total_items']}")
    print(f"In progress:      {stats['sessions_in_progress']}")
    print(f"Sessions done:    {stats['total_sessions']}")
    print(f"Answers:          {stats['total_questions_answered']}")
    print(f"Accuracy:         {stats['accuracy']}%")
    db.close()


if __name__ == "__main__":
    main()
