from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Phase(str, Enum):
    PROMPTING = "prompting"
    EVALUATING = "evaluating"
    FEEDBACK = "feedback"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PracticeItem:
    id: str
    target_text: str
    translation: str
    language: str
    phonetic: str | None = None  # expected transcription, e.g. "marhaba"


@dataclass
class Judgment:
    correct: bool
    feedback: str = ""


@dataclass
class AnswerResult:
    item_id: str
    correct: bool
    user_answer: str
    correct_answer: str
    feedback: str | None = None
    user_phonetic: str | None = None
    expected_phonetic: str | None = None
    phonetic_correct: bool | None = None  # None = not applicable

    def to_dict(self) -> dict:
        d = {
            "itemId": self.item_id,
            "correct": self.correct,
            "userAnswer": self.user_answer,
            "correctAnswer": self.correct_answer,
        }
        if self.feedback is not None:
            d["feedback"] = self.feedback
        if self.user_phonetic is not None:
            d["userPhonetic"] = self.user_phonetic
        if self.expected_phonetic is not None:
            d["expectedPhonetic"] = self.expected_phonetic
        if self.phonetic_correct is not None:
            d["phoneticCorrect"] = self.phonetic_correct
        return d

    @classmethod
    def from_dict(cls, d: dict) -> AnswerResult:
        """Build from a stored record. Raises ValueError on schema violations."""
        if not isinstance(d, dict):
            raise ValueError("answer entry is not an object")
        item_id = d.get("itemId")
        correct = d.get("correct")
        if not isinstance(item_id, str) or not isinstance(correct, bool):
            raise ValueError("answer entry missing itemId/correct")
        for key in ("userAnswer", "correctAnswer"):
            if not isinstance(d.get(key, ""), str):
                raise ValueError(f"answer entry has non-string {key}")
        for key in ("feedback", "userPhonetic", "expectedPhonetic"):
            value = d.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"answer entry has non-string {key}")
        phonetic_correct = d.get("phoneticCorrect")
        if phonetic_correct is not None and not isinstance(phonetic_correct, bool):
            raise ValueError("answer entry has non-boolean phoneticCorrect")
        return cls(
            item_id=item_id,
            correct=correct,
            user_answer=d.get("userAnswer", ""),
            correct_answer=d.get("correctAnswer", ""),
            feedback=d.get("feedback"),
            user_phonetic=d.get("userPhonetic"),
            expected_phonetic=d.get("expectedPhonetic"),
            phonetic_correct=phonetic_correct,
        )


@dataclass
class Lesson:
    slug: str
    title: str
    language: str
    items: list[PracticeItem]
    source_file: str = ""
