"""Prompt templates for semantic answer judging."""
from __future__ import annotations

JUDGE_SYSTEM = "You grade vocabulary translations. Return valid JSON only."

JUDGE_PROMPT = """\
Expected Translation: "{expected}"
User Answer: "{submitted}"
Language: {language}

Is the user's answer a valid translation? Be GENEROUS - accept:
- Minor typos and spelling variations
- Synonyms and semantically equivalent words
- Alternative meanings (e.g., "salaam" = both "peace" AND "hello")
- Greetings used interchangeably (hello/hi/hey, goodbye/bye)
- Different but correct translations for the same word

Many words have multiple valid translations, and greetings often derive \
from words with other meanings. Mark correct if the user's answer is ANY \
valid translation of the word.

Respond in this exact JSON format only, with no other text:
{{
  "correct": true,
  "feedback": "Brief explanation (max 10 words)"
}}
"""


def format_judge_prompt(submitted: str, expected: str, language: str) -> str:
    # Quotes inside answers would break the quoted fields of the template.
    return JUDGE_PROMPT.format(
        submitted=submitted.replace('"', "'"),
        expected=expected.replace('"', "'"),
        language=language,
    )
