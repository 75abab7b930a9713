"""Shared test fixtures."""
from __future__ import annotations

import pytest

from vocab_drill.db import Database
from vocab_drill.models import Judgment, Lesson, PracticeItem
from vocab_drill.progress import ProgressStore
from vocab_drill.store import MemoryStore

# Fixed "now" for progress records: 2026-01-01T00:00:00Z
NOW = 1767225600.0


class FakeJudge:
    """Records calls; answers with a fixed verdict or raises."""

    def __init__(self, correct: bool = True, feedback: str = "Correct!", error: Exception | None = None):
        self.correct = correct
        self.feedback = feedback
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def __call__(self, submitted: str, expected: str, language: str) -> Judgment:
        self.calls.append((submitted, expected, language))
        if self.error is not None:
            raise self.error
        return Judgment(correct=self.correct, feedback=self.feedback)


@pytest.fixture
def sample_items():
    """Three Arabic words, in lesson order A, B, C."""
    return [
        PracticeItem("item-a", "مرحبا", "hello", "arabic", phonetic="marhaba"),
        PracticeItem("item-b", "شكرا", "thank you", "arabic", phonetic="shukran"),
        PracticeItem("item-c", "نعم", "yes", "arabic", phonetic="naam"),
    ]


@pytest.fixture
def judge():
    return FakeJudge()


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def clock():
    """Mutable clock: set clock.now to move time."""
    class Clock:
        now = NOW

        def __call__(self) -> float:
            return self.now

    return Clock()


@pytest.fixture
def progress_store(kv, clock):
    return ProgressStore(kv, clock=clock)


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_lesson(sample_items):
    return Lesson(
        slug="greetings",
        title="Greetings",
        language="arabic",
        items=sample_items,
        source_file="arabic.md",
    )


@pytest.fixture
def lesson_md_content():
    """Minimal lesson markdown for parser testing."""
    return """\
# Arabic Basics

---

## Greetings (arabic)

| Word | Translation | Transliteration |
|------|-------------|-----------------|
| **مرحبا** | hello | marhaba |
| **شكرا** | thank you | shukran |
| **نعم** | yes | |

---

## Spanish Numbers (Spanish)

| Word | Translation |
|------|-------------|
| **uno** | one |
| **dos** | two |

## Notes

Nothing to drill here.
"""


@pytest.fixture
def make_judge():
    """Factory for judges with a non-default verdict."""
    return FakeJudge
