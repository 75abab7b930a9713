"""Parse lesson markdown files into Lesson objects.

Each lesson is a level-2 header naming the lesson and its language, followed
by a table of items. The transliteration column is optional:

  ## Greetings (arabic)

  | Word | Translation | Transliteration |
  |------|-------------|-----------------|
  | **مرحبا** | hello | marhaba |
  | **شكرا** | thank you | |
"""
from __future__ import annotations

import hashlib
import re
from pathlib import Path

from vocab_drill.models import Lesson, PracticeItem

DEFAULT_LANGUAGE = "english"


def slugify(title: str) -> str:
    slug = re.sub(r"[^\w]+", "-", title.lower(), flags=re.UNICODE).strip("-")
    return slug or "lesson"


def item_id(lesson_slug: str, target_text: str) -> str:
    return hashlib.sha256(f"{lesson_slug}:{target_text}".encode()).hexdigest()[:16]


def _split_row(line: str) -> list[str]:
    return [cell.strip() for cell in line.strip().strip("|").split("|")]


def parse_items_file(path: Path) -> list[Lesson]:
    text = path.read_text(encoding="utf-8")
    source = path.name
    lessons: list[Lesson] = []
    current: Lesson | None = None

    for line in text.splitlines():
        m = re.match(r"^## (.+?)(?:\s*\((\w+)\))?\s*$", line)
        if m:
            title = m.group(1).strip()
            current = Lesson(
                slug=slugify(title),
                title=title,
                language=(m.group(2) or DEFAULT_LANGUAGE).lower(),
                items=[],
                source_file=source,
            )
            lessons.append(current)
            continue

        if current is None or not line.startswith("|"):
            continue

        # Only rows with a bold target are items; header and divider rows aren't.
        cells = _split_row(line)
        m = re.fullmatch(r"\*\*(.+?)\*\*", cells[0])
        if not m or len(cells) < 2 or not cells[1]:
            continue
        target = m.group(1).strip()
        iid = item_id(current.slug, target)
        if any(it.id == iid for it in current.items):
            continue
        phonetic = cells[2] if len(cells) > 2 and cells[2] else None
        current.items.append(PracticeItem(
            id=iid,
            target_text=target,
            translation=cells[1],
            language=current.language,
            phonetic=phonetic,
        ))

    return [lesson for lesson in lessons if lesson.items]
