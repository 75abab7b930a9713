"""Judge a single submitted answer against a practice item."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vocab_drill.fuzzy import transliteration_matches
from vocab_drill.models import AnswerResult, PracticeItem

if TYPE_CHECKING:
    from vocab_drill.judge import SemanticJudge

_log = logging.getLogger("vocab_drill.evaluator")

UNVERIFIED_FEEDBACK = "Unable to verify answer."


def phonetic_correctness(item: PracticeItem, phonetic: str | None) -> bool | None:
    """Fuzzy-check a transcription; None when there is nothing to compare."""
    if not phonetic or not phonetic.strip() or not item.phonetic:
        return None
    return transliteration_matches(phonetic, item.phonetic)


async def evaluate_answer(
    item: PracticeItem,
    answer: str,
    judge: SemanticJudge,
    phonetic: str | None = None,
) -> AnswerResult:
    """Exact match first, semantic judge otherwise.

    The exact-match path only saves a round trip: it never accepts anything
    the judge would reject. A failing judge yields an incorrect result
    instead of an exception.
    """
    phonetic_ok = phonetic_correctness(item, phonetic)
    submitted = answer.strip()
    result = AnswerResult(
        item_id=item.id,
        correct=False,
        user_answer=submitted,
        correct_answer=item.translation,
        user_phonetic=phonetic.strip() if phonetic and phonetic.strip() else None,
        expected_phonetic=item.phonetic if phonetic_ok is not None else None,
        phonetic_correct=phonetic_ok,
    )

    if submitted.lower() == item.translation.strip().lower():
        result.correct = phonetic_ok is not False
        return result

    try:
        judgment = await judge(submitted, item.translation, item.language)
    except Exception as e:
        _log.warning("Semantic judge failed for item %s: %s", item.id, e)
        result.feedback = UNVERIFIED_FEEDBACK
        return result

    result.correct = judgment.correct and phonetic_ok is not False
    result.feedback = judgment.feedback or None
    return result
