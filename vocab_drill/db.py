from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from vocab_drill.models import Lesson, PracticeItem
from vocab_drill.store import KeyValueStore

SCHEMA = """
CREATE TABLE IF NOT EXISTS lessons (
    slug TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    language TEXT NOT NULL,
    source_file TEXT
);

CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    lesson_slug TEXT NOT NULL REFERENCES lessons(slug),
    position INTEGER NOT NULL,
    target_text TEXT NOT NULL,
    translation TEXT NOT NULL,
    phonetic TEXT,
    language TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS progress (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_key TEXT NOT NULL,
    ended_at TEXT NOT NULL,
    questions_total INTEGER DEFAULT 0,
    questions_correct INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS file_mtimes (
    file_path TEXT PRIMARY KEY,
    mtime_ns INTEGER NOT NULL
);
"""


class Database(KeyValueStore):
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Key-value (session progress) ──────────────────────────────────────

    def get(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM progress WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "INSERT OR REPLACE INTO progress (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, now),
        )
        self.conn.commit()

    def delete(self, key: str) -> None:
        self.conn.execute("DELETE FROM progress WHERE key = ?", (key,))
        self.conn.commit()

    def get_progress_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM progress").fetchone()
        return row[0]

    # ── Import ────────────────────────────────────────────────────────────

    def delete_lessons_by_source(self, source_file: str) -> int:
        """Remove lessons (and their items) originally imported from *source_file*."""
        slugs = [
            row[0]
            for row in self.conn.execute(
                "SELECT slug FROM lessons WHERE source_file = ?", (source_file,)
            ).fetchall()
        ]
        for slug in slugs:
            self.conn.execute("DELETE FROM items WHERE lesson_slug = ?", (slug,))
        self.conn.execute("DELETE FROM lessons WHERE source_file = ?", (source_file,))
        self.conn.commit()
        return len(slugs)

    def import_lessons(self, lessons: list[Lesson]) -> int:
        count = 0
        for lesson in lessons:
            self.conn.execute(
                "INSERT OR REPLACE INTO lessons (slug, title, language, source_file) "
                "VALUES (?, ?, ?, ?)",
                (lesson.slug, lesson.title, lesson.language, lesson.source_file),
            )
            self.conn.execute("DELETE FROM items WHERE lesson_slug = ?", (lesson.slug,))
            for pos, it in enumerate(lesson.items):
                self.conn.execute(
                    "INSERT OR REPLACE INTO items "
                    "(id, lesson_slug, position, target_text, translation, phonetic, language) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (it.id, lesson.slug, pos, it.target_text, it.translation, it.phonetic, it.language),
                )
            count += 1
        self.conn.commit()
        return count

    # ── File mtimes ─────────────────────────────────────────────────────

    def get_file_mtime(self, file_path: str) -> int | None:
        row = self.conn.execute(
            "SELECT mtime_ns FROM file_mtimes WHERE file_path = ?", (file_path,)
        ).fetchone()
        return row[0] if row else None

    def set_file_mtime(self, file_path: str, mtime_ns: int) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO file_mtimes (file_path, mtime_ns) VALUES (?, ?)",
            (file_path, mtime_ns),
        )
        self.conn.commit()

    # ── Lessons and items ─────────────────────────────────────────────────

    def get_lessons(self) -> list[dict]:
        rows = self.conn.execute(
            "SELECT l.slug, l.title, l.language, COUNT(i.id) AS item_count "
            "FROM lessons l LEFT JOIN items i ON i.lesson_slug = l.slug "
            "GROUP BY l.slug ORDER BY l.title"
        ).fetchall()
        return [dict(r) for r in rows]

    def get_lesson_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM lessons").fetchone()
        return row[0]

    def get_item_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM items").fetchone()
        return row[0]

    def get_lesson_items(self, slug: str) -> list[PracticeItem]:
        rows = self.conn.execute(
            "SELECT * FROM items WHERE lesson_slug = ? ORDER BY position", (slug,)
        ).fetchall()
        return [
            PracticeItem(
                id=r["id"],
                target_text=r["target_text"],
                translation=r["translation"],
                language=r["language"],
                phonetic=r["phonetic"],
            )
            for r in rows
        ]

    # ── Sessions ──────────────────────────────────────────────────────────

    def record_session(self, session_key: str, total: int, correct: int) -> int:
        now = datetime.now(timezone.utc).isoformat()
        cur = self.conn.execute(
            "INSERT INTO sessions (session_key, ended_at, questions_total, questions_correct) "
            "VALUES (?, ?, ?, ?)",
            (session_key, now, total, correct),
        )
        self.conn.commit()
        return cur.lastrowid

    def get_session_history(self, limit: int = 20) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM sessions ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [dict(r) for r in rows]

    def get_stats(self) -> dict:
        totals = self.conn.execute(
            "SELECT COUNT(*) AS cnt, "
            "COALESCE(SUM(questions_total), 0) AS total, "
            "COALESCE(SUM(questions_correct), 0) AS correct "
            "FROM sessions"
        ).fetchone()
        total = totals["total"]
        correct = totals["correct"]
        return {
            "total_lessons": self.get_lesson_count(),
            "total_items": self.get_item_count(),
            "sessions_in_progress": self.get_progress_count(),
            "total_sessions": totals["cnt"],
            "total_questions_answered": total,
            "total_correct": correct,
            "accuracy": round(correct / total * 100, 1) if total > 0 else 0,
        }
