"""Practice-session state machine.

    PROMPTING --submit--> EVALUATING --(judgment)--> FEEDBACK
        ^  |                                            |
        |  +--skip (rotate current item to the end)     |
        +------------------ continue_to_next -----------+--> COMPLETE

The queue holds the ids of items not yet answered; the cursor points at the
item on screen. Answering (submit + continue) removes an item, skipping moves
it to the back, so a session only completes once every item was answered.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from vocab_drill.evaluator import evaluate_answer
from vocab_drill.models import AnswerResult, Phase, PracticeItem
from vocab_drill.progress import ProgressV2

if TYPE_CHECKING:
    from vocab_drill.judge import SemanticJudge
    from vocab_drill.progress import ProgressStore

log = logging.getLogger("vocab_drill.session")


class SessionEngine:
    def __init__(
        self,
        session_id: str,
        items: Sequence[PracticeItem],
        judge: SemanticJudge,
        store: ProgressStore | None = None,
        on_complete: Callable[[list[AnswerResult]], None] | None = None,
    ):
        ids = [it.id for it in items]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate practice item ids in session {session_id}")
        self.session_id = session_id
        self.items: tuple[PracticeItem, ...] = tuple(items)
        self.judge = judge
        self.store = store
        self.on_complete = on_complete

        self._by_id = {it.id: it for it in self.items}
        self._hydrated = False
        self._disposed = False
        self._restored = False
        self._epoch = 0
        self._init_fresh()

    def _init_fresh(self) -> None:
        self._queue: list[str] = [it.id for it in self.items]
        self._cursor = 0
        self._answers: list[AnswerResult] = []
        self._epoch += 1
        # An empty session has nothing to ask: it starts (and stays) complete.
        self._phase = Phase.PROMPTING if self._queue else Phase.COMPLETE

    # ── Hydration ─────────────────────────────────────────────────────────

    def hydrate(self) -> bool:
        """Restore persisted progress, if any. Returns True if restored.

        Until this runs nothing is written to the store, so a half-built
        engine can never overwrite a record it hasn't read yet.
        """
        if self._hydrated:
            return self._restored
        record = None
        if self.store is not None and self.items:
            record = self.store.load(self.session_id, self.items)
        if record is not None:
            self._queue = list(record.queue)
            self._cursor = record.current_pos
            self._answers = list(record.answers)
            self._phase = record.phase
            self._restored = True
            log.info(
                "Session %s resumed: %d left, %d answered",
                self.session_id, len(self._queue), len(self._answers),
            )
        self._hydrated = True
        return self._restored

    def dispose(self) -> None:
        """Detach from the host. Pending work finishes but persists nothing."""
        self._disposed = True

    # ── Read-only view ───────────────────────────────────────────────────

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def queue(self) -> list[str]:
        return list(self._queue)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current_item(self) -> PracticeItem | None:
        if not self._queue or self._phase == Phase.COMPLETE:
            return None
        return self._by_id[self._queue[self._cursor]]

    @property
    def current_index(self) -> int:
        """Position of the current item in the original item order."""
        item = self.current_item
        if item is None:
            return 0
        return self.items.index(item)

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def answers(self) -> list[AnswerResult]:
        return list(self._answers)

    @property
    def last_answer(self) -> AnswerResult | None:
        return self._answers[-1] if self._answers else None

    @property
    def correct_count(self) -> int:
        return sum(1 for a in self._answers if a.correct)

    @property
    def is_evaluating(self) -> bool:
        return self._phase == Phase.EVALUATING

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    @property
    def has_saved_progress(self) -> bool:
        return self._restored

    # ── Operations ───────────────────────────────────────────────────────

    async def submit(self, answer: str, phonetic: str | None = None) -> AnswerResult | None:
        if self._phase != Phase.PROMPTING or not self._queue:
            return None
        item = self._by_id[self._queue[self._cursor]]
        self._phase = Phase.EVALUATING
        epoch = self._epoch
        try:
            result = await evaluate_answer(item, answer, self.judge, phonetic=phonetic)
        except asyncio.CancelledError:
            self._phase = Phase.PROMPTING
            raise
        if epoch != self._epoch:
            log.info("Session %s was reset during evaluation; dropping result", self.session_id)
            return None
        self._answers.append(result)
        self._phase = Phase.FEEDBACK
        log.info(
            "Session %s: %s answered %s",
            self.session_id, item.id, "correctly" if result.correct else "incorrectly",
        )
        self._persist()
        return result

    def continue_to_next(self) -> bool:
        if self._phase != Phase.FEEDBACK:
            return False
        del self._queue[self._cursor]
        if not self._queue:
            self._cursor = 0
            self._phase = Phase.COMPLETE
            log.info(
                "Session %s complete: %d/%d correct",
                self.session_id, self.correct_count, len(self._answers),
            )
            if not self._disposed:
                if self.store is not None and self._hydrated:
                    self.store.clear(self.session_id)
                if self.on_complete is not None:
                    self.on_complete(list(self._answers))
            return True
        if self._cursor >= len(self._queue):
            self._cursor = 0
        self._phase = Phase.PROMPTING
        self._persist()
        return True

    def skip(self) -> bool:
        if self._phase != Phase.PROMPTING or not self._queue:
            return False
        item_id = self._queue.pop(self._cursor)
        self._queue.append(item_id)
        # The next item slides into the cursor slot. From the last slot that
        # would be the skipped item again, so wrap to the front.
        if self._cursor == len(self._queue) - 1:
            self._cursor = 0
        self._persist()
        return True

    def go_to_item(self, index: int) -> bool:
        """Jump to the item at *index* of the original order, if still queued."""
        if self._phase != Phase.PROMPTING or not 0 <= index < len(self.items):
            return False
        item_id = self.items[index].id
        if item_id not in self._queue:
            return False
        self._cursor = self._queue.index(item_id)
        self._persist()
        return True

    def reset(self) -> None:
        self._init_fresh()

    def start_fresh(self) -> None:
        self._init_fresh()
        self._restored = False
        if self.store is not None and self._hydrated and not self._disposed:
            self.store.clear(self.session_id)

    # ── Persistence ──────────────────────────────────────────────────────

    def _is_pristine(self) -> bool:
        return (
            self._cursor == 0
            and not self._answers
            and self._queue == [it.id for it in self.items]
        )

    def _persist(self) -> None:
        if self.store is None or not self._hydrated or self._disposed:
            return
        if self._phase in (Phase.COMPLETE, Phase.EVALUATING):
            return
        if self._is_pristine():
            # Back at the start: an older record would resume somewhere else.
            self.store.clear(self.session_id)
            return
        self.store.save(
            self.session_id,
            ProgressV2(
                queue=list(self._queue),
                current_pos=self._cursor,
                answers=list(self._answers),
                phase=self._phase,
            ),
        )

    def snapshot(self) -> dict:
        item = self.current_item
        last = self.last_answer
        return {
            "session_id": self.session_id,
            "phase": self._phase.value,
            "current_item": None if item is None else {
                "id": item.id,
                "target_text": item.target_text,
                "language": item.language,
                "has_phonetic": item.phonetic is not None,
            },
            "cursor": self._cursor,
            "current_index": self.current_index,
            "total_items": self.total_items,
            "remaining": self.remaining,
            "answers": [a.to_dict() for a in self._answers],
            "last_answer": None if last is None else last.to_dict(),
            "correct_count": self.correct_count,
            "is_evaluating": self.is_evaluating,
            "is_hydrated": self._hydrated,
            "has_saved_progress": self._restored,
        }
