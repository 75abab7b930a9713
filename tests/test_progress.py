"""Tests for versioned progress records and v1 -> v2 migration."""
from __future__ import annotations

import json

import pytest

from vocab_drill.models import AnswerResult, Phase
from vocab_drill.progress import (
    ProgressV1,
    ProgressV2,
    migrate_v1,
    parse_record,
)

from conftest import NOW

KEY = "exercise-progress-lesson-1"
NOW_MS = int(NOW * 1000)
HOUR_MS = 3600 * 1000


def answer(item_id: str, correct: bool = True) -> dict:
    return {
        "itemId": item_id,
        "correct": correct,
        "userAnswer": "x",
        "correctAnswer": "x",
        "feedback": "Correct!",
    }


def v2_record(**overrides) -> dict:
    record = {
        "version": 2,
        "queue": ["item-b", "item-c"],
        "currentPos": 0,
        "answers": [answer("item-a")],
        "savedAt": NOW_MS - 1000,
        "phase": "prompting",
    }
    record.update(overrides)
    return record


class TestParseRecord:
    def test_v1(self):
        rec = parse_record(json.dumps({"currentIndex": 1, "answers": [answer("item-a")], "savedAt": NOW_MS}))
        assert isinstance(rec, ProgressV1)
        assert rec.current_index == 1
        assert rec.answers[0].item_id == "item-a"

    def test_v2(self):
        rec = parse_record(json.dumps(v2_record()))
        assert isinstance(rec, ProgressV2)
        assert rec.queue == ["item-b", "item-c"]
        assert rec.phase == Phase.PROMPTING

    def test_v2_phase_optional(self):
        data = v2_record()
        del data["phase"]
        assert parse_record(json.dumps(data)).phase == Phase.PROMPTING

    @pytest.mark.parametrize("raw", [
        "not json",
        "[]",
        json.dumps({"currentIndex": 1, "answers": []}),
        json.dumps({"currentIndex": "1", "answers": [], "savedAt": NOW_MS}),
        json.dumps({"currentIndex": -1, "answers": [], "savedAt": NOW_MS}),
        json.dumps({"currentIndex": 0, "answers": "none", "savedAt": NOW_MS}),
        json.dumps({"currentIndex": 0, "answers": [{"correct": True}], "savedAt": NOW_MS}),
        json.dumps(v2_record(version=3)),
        json.dumps(v2_record(queue="item-b")),
        json.dumps(v2_record(currentPos=True)),
        json.dumps(v2_record(phase="dancing")),
    ])
    def test_malformed(self, raw):
        with pytest.raises(ValueError):
            parse_record(raw)

    def test_v2_to_dict_roundtrip(self):
        data = v2_record()
        assert parse_record(json.dumps(data)).to_dict() == data


class TestMigrateV1:
    def test_spec_example(self, sample_items):
        rec = ProgressV1(current_index=1, answers=[AnswerResult.from_dict(answer("item-a"))], saved_at=NOW_MS)
        v2 = migrate_v1(rec, sample_items)
        assert v2.queue == ["item-b", "item-c"]
        assert v2.current_pos == 0
        assert [a.item_id for a in v2.answers] == ["item-a"]
        assert v2.phase == Phase.PROMPTING

    def test_excludes_answered_items_at_or_after_index(self, sample_items):
        # Answered B but never continued: B must not be asked again.
        rec = ProgressV1(current_index=1, answers=[AnswerResult.from_dict(answer("item-b"))], saved_at=NOW_MS)
        assert migrate_v1(rec, sample_items).queue == ["item-c"]

    def test_nothing_left(self, sample_items):
        answers = [AnswerResult.from_dict(answer("item-c"))]
        assert migrate_v1(ProgressV1(2, answers, NOW_MS), sample_items) is None
        assert migrate_v1(ProgressV1(3, [], NOW_MS), sample_items) is None

    def test_index_past_end(self, sample_items):
        with pytest.raises(ValueError):
            migrate_v1(ProgressV1(4, [], NOW_MS), sample_items)


class TestProgressStoreLoad:
    def test_absent(self, progress_store, sample_items):
        assert progress_store.load("lesson-1", sample_items) is None

    def test_v2_loaded(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps(v2_record()))
        rec = progress_store.load("lesson-1", sample_items)
        assert rec.queue == ["item-b", "item-c"]
        assert rec.answers[0].item_id == "item-a"

    def test_recent_record_restored(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps(v2_record(savedAt=NOW_MS - 23 * HOUR_MS)))
        assert progress_store.load("lesson-1", sample_items) is not None

    def test_stale_record_ignored(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps(v2_record(savedAt=NOW_MS - 25 * HOUR_MS)))
        assert progress_store.load("lesson-1", sample_items) is None
        assert kv.get(KEY) is None

    def test_stale_v1_ignored(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps({"currentIndex": 1, "answers": [], "savedAt": NOW_MS - 25 * HOUR_MS}))
        assert progress_store.load("lesson-1", sample_items) is None

    def test_custom_max_age(self, kv, clock, sample_items):
        from vocab_drill.progress import ProgressStore
        store = ProgressStore(kv, max_age_hours=1, clock=clock)
        kv.set(KEY, json.dumps(v2_record(savedAt=NOW_MS - 2 * HOUR_MS)))
        assert store.load("lesson-1", sample_items) is None

    def test_corrupt_record_discarded(self, progress_store, kv, sample_items):
        kv.set(KEY, "{not json")
        assert progress_store.load("lesson-1", sample_items) is None
        assert kv.get(KEY) is None

    @pytest.mark.parametrize("overrides", [
        {"queue": []},
        {"queue": ["item-b", "item-b"]},
        {"queue": ["item-b", "item-z"]},
        {"currentPos": 2},
        {"currentPos": -1},
        {"phase": "complete"},
        {"queue": ["item-a", "item-b", "item-c"]},  # A answered yet still queued
        {"phase": "feedback"},  # last answer is A, but current item is B
    ])
    def test_inconsistent_v2_discarded(self, progress_store, kv, sample_items, overrides):
        kv.set(KEY, json.dumps(v2_record(**overrides)))
        assert progress_store.load("lesson-1", sample_items) is None
        assert kv.get(KEY) is None

    def test_feedback_phase_restored(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps(v2_record(
            queue=["item-b", "item-c", "item-a"],
            answers=[answer("item-b")],
            phase="feedback",
        )))
        rec = progress_store.load("lesson-1", sample_items)
        assert rec.phase == Phase.FEEDBACK
        assert rec.queue[rec.current_pos] == "item-b"

    def test_evaluating_resumes_as_prompting(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps(v2_record(phase="evaluating")))
        assert progress_store.load("lesson-1", sample_items).phase == Phase.PROMPTING


class TestMigrationOnLoad:
    def test_v1_migrated_and_persisted(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps({"currentIndex": 1, "answers": [answer("item-a")], "savedAt": NOW_MS - 1000}))
        rec = progress_store.load("lesson-1", sample_items)

        assert rec.queue == ["item-b", "item-c"]
        assert rec.current_pos == 0
        stored = json.loads(kv.get(KEY))
        assert stored["version"] == 2
        assert stored["queue"] == ["item-b", "item-c"]
        assert stored["currentPos"] == 0
        assert [a["itemId"] for a in stored["answers"]] == ["item-a"]
        assert stored["savedAt"] == NOW_MS

    def test_roundtrip_is_stable(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps({"currentIndex": 1, "answers": [answer("item-a")], "savedAt": NOW_MS - 1000}))
        first = progress_store.load("lesson-1", sample_items)
        after_migration = kv.get(KEY)

        second = progress_store.load("lesson-1", sample_items)
        assert kv.get(KEY) == after_migration  # not rewritten: no second migration
        assert second.to_dict() == first.to_dict()
        assert len(second.answers) == 1

    def test_v1_with_nothing_left_starts_over(self, progress_store, kv, sample_items):
        kv.set(KEY, json.dumps({"currentIndex": 3, "answers": [], "savedAt": NOW_MS}))
        assert progress_store.load("lesson-1", sample_items) is None
        assert kv.get(KEY) is None


class TestProgressStoreSave:
    def test_save_stamps_time(self, progress_store, kv):
        rec = ProgressV2(queue=["item-a"], current_pos=0, answers=[])
        progress_store.save("lesson-1", rec)
        stored = json.loads(kv.get(KEY))
        assert stored["savedAt"] == NOW_MS
        assert stored["version"] == 2
        assert stored["phase"] == "prompting"

    def test_clear(self, progress_store, kv):
        kv.set(KEY, "{}")
        progress_store.clear("lesson-1")
        assert kv.get(KEY) is None

    def test_sessions_do_not_share_records(self, progress_store, kv, sample_items):
        progress_store.save("lesson-1", ProgressV2(queue=["item-b", "item-a"], current_pos=1, answers=[]))
        assert progress_store.load("lesson-2", sample_items) is None
        assert progress_store.load("lesson-1", sample_items).current_pos == 1
