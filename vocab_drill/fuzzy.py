"""Fuzzy comparison of phonetic transcriptions (transliterations).

Learners spell the same sound many ways ("shukran" / "šukran", "marhaba" /
"marhaaba"), so both sides are first collapsed to a canonical spelling and
then compared with a length-scaled Levenshtein tolerance.
"""
from __future__ import annotations

import re

# Applied in order; "ou" must run after "oo" so "ooo" doesn't leave a stray "o".
_SUBSTITUTIONS = [
    ("aa", "a"),
    ("ee", "i"),
    ("oo", "u"),
    ("ou", "u"),
    ("kh", "x"),
    ("gh", "g"),
    ("th", "t"),
    ("dh", "d"),
    ("sh", "š"),
]

_APOSTROPHES = re.compile(r"['`ʼ‘’]")


def normalize_transliteration(s: str) -> str:
    s = _APOSTROPHES.sub("'", s.lower().strip())
    for old, new in _SUBSTITUTIONS:
        s = s.replace(old, new)
    s = s.replace("-", " ")
    return re.sub(r"\s+", " ", s)


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit cost for substitution, insertion and deletion."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def max_distance_for(expected: str) -> int:
    """Allowed typos for a normalized expected transcription."""
    n = len(expected)
    if n <= 5:
        return 1
    if n <= 10:
        return 2
    return 3


def transliteration_matches(user_input: str, expected: str) -> bool:
    user_norm = normalize_transliteration(user_input)
    expected_norm = normalize_transliteration(expected)
    if user_norm == expected_norm:
        return True
    return levenshtein_distance(user_norm, expected_norm) <= max_distance_for(expected_norm)
