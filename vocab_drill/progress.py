"""Versioned persistence of practice-session progress.

Two record layouts exist in the wild:

  v1 (legacy, read-only)  {"currentIndex": 1, "answers": [...], "savedAt": ms}
  v2                      {"version": 2, "queue": [ids], "currentPos": 0,
                           "answers": [...], "savedAt": ms, "phase": "prompting"}

v1 stored an absolute index into the original item order; v2 stores the queue
of item ids still to be answered. v1 records are migrated on load and written
back as v2 straight away. Anything that fails to parse or contradicts the
session's items is dropped and the session starts over.
"""
from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import ClassVar

from vocab_drill.models import AnswerResult, Phase, PracticeItem
from vocab_drill.store import KeyValueStore

log = logging.getLogger("vocab_drill.progress")

PROGRESS_KEY_PREFIX = "exercise-progress-"
CURRENT_VERSION = 2
DEFAULT_MAX_AGE_HOURS = 24.0


@dataclass
class ProgressV1:
    version: ClassVar[int] = 1

    current_index: int
    answers: list[AnswerResult]
    saved_at: float


@dataclass
class ProgressV2:
    version: ClassVar[int] = 2

    queue: list[str]
    current_pos: int
    answers: list[AnswerResult]
    saved_at: float = 0
    phase: Phase = Phase.PROMPTING

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "queue": list(self.queue),
            "currentPos": self.current_pos,
            "answers": [a.to_dict() for a in self.answers],
            "savedAt": self.saved_at,
            "phase": self.phase.value,
        }


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_record(raw: str) -> ProgressV1 | ProgressV2:
    """Decode a stored record. Raises ValueError for anything malformed."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("record is not an object")

    saved_at = data.get("savedAt")
    if not isinstance(saved_at, (int, float)) or isinstance(saved_at, bool):
        raise ValueError("record has no numeric savedAt")
    answers_raw = data.get("answers")
    if not isinstance(answers_raw, list):
        raise ValueError("record has no answers list")
    answers = [AnswerResult.from_dict(a) for a in answers_raw]

    if "version" not in data:
        current_index = data.get("currentIndex")
        if not _is_int(current_index) or current_index < 0:
            raise ValueError("v1 record has invalid currentIndex")
        return ProgressV1(current_index=current_index, answers=answers, saved_at=saved_at)

    if data["version"] != CURRENT_VERSION:
        raise ValueError(f"unsupported record version {data['version']!r}")
    queue = data.get("queue")
    if not isinstance(queue, list) or not all(isinstance(i, str) for i in queue):
        raise ValueError("v2 record has invalid queue")
    current_pos = data.get("currentPos")
    if not _is_int(current_pos):
        raise ValueError("v2 record has invalid currentPos")
    phase = Phase(data.get("phase") or Phase.PROMPTING.value)
    return ProgressV2(
        queue=queue,
        current_pos=current_pos,
        answers=answers,
        saved_at=saved_at,
        phase=phase,
    )


def migrate_v1(record: ProgressV1, items: Sequence[PracticeItem]) -> ProgressV2 | None:
    """Rebuild a queue from a legacy index; None when nothing is left to ask."""
    if record.current_index > len(items):
        raise ValueError("v1 currentIndex is past the end of the items")
    answered = {a.item_id for a in record.answers}
    queue = [it.id for it in items[record.current_index:] if it.id not in answered]
    if not queue:
        return None
    return ProgressV2(
        queue=queue,
        current_pos=0,
        answers=list(record.answers),
        saved_at=record.saved_at,
        phase=Phase.PROMPTING,
    )


def validate_v2(record: ProgressV2, items: Sequence[PracticeItem]) -> ProgressV2:
    """Check a v2 record against the session's items; raises ValueError."""
    known = {it.id for it in items}
    queue = record.queue
    if not queue:
        raise ValueError("queue is empty (completed sessions are not stored)")
    if len(set(queue)) != len(queue):
        raise ValueError("queue has duplicate ids")
    unknown = [i for i in queue if i not in known]
    if unknown:
        raise ValueError(f"queue references unknown items: {unknown}")
    if not 0 <= record.current_pos < len(queue):
        raise ValueError(f"currentPos {record.current_pos} out of range")

    if record.phase == Phase.COMPLETE:
        raise ValueError("completed sessions are not stored")
    if record.phase == Phase.EVALUATING:
        # The judgment never finished; ask again.
        record.phase = Phase.PROMPTING

    answered = {a.item_id for a in record.answers}
    overlap = answered.intersection(queue)
    if record.phase == Phase.FEEDBACK:
        current = queue[record.current_pos]
        if not record.answers or record.answers[-1].item_id != current:
            raise ValueError("feedback phase without an answer for the current item")
        overlap.discard(current)
    if overlap:
        raise ValueError(f"answered items still queued: {sorted(overlap)}")
    return record


class ProgressStore:
    """Loads and saves session progress in a key-value store."""

    def __init__(
        self,
        kv: KeyValueStore,
        max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.max_age_hours = max_age_hours
        self._clock = clock

    @staticmethod
    def key(session_id: str) -> str:
        return f"{PROGRESS_KEY_PREFIX}{session_id}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def is_stale(self, saved_at: float) -> bool:
        return self._now_ms() - saved_at >= self.max_age_hours * 3600 * 1000

    def load(self, session_id: str, items: Sequence[PracticeItem]) -> ProgressV2 | None:
        key = self.key(session_id)
        raw = self.kv.get(key)
        if raw is None:
            return None

        try:
            record = parse_record(raw)
            if self.is_stale(record.saved_at):
                log.info("Ignoring stale progress for %s", session_id)
                self.kv.delete(key)
                return None
            if isinstance(record, ProgressV1):
                migrated = migrate_v1(record, items)
                if migrated is None:
                    log.info("Legacy progress for %s has nothing left to ask; starting over", session_id)
                    self.kv.delete(key)
                    return None
                record = validate_v2(migrated, items)
                self.save(session_id, record)
                log.info("Migrated progress for %s to v%d", session_id, CURRENT_VERSION)
                return record
            return validate_v2(record, items)
        except (ValueError, TypeError) as e:
            log.warning("Discarding unreadable progress for %s: %s", session_id, e)
            self.kv.delete(key)
            return None

    def save(self, session_id: str, record: ProgressV2) -> None:
        record.saved_at = self._now_ms()
        self.kv.set(self.key(session_id), json.dumps(record.to_dict()))

    def clear(self, session_id: str) -> None:
        self.kv.delete(self.key(session_id))
