"""LLM-backed semantic equivalence judge for free-text translations."""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import httpx

from vocab_drill.models import Judgment
from vocab_drill.prompts import JUDGE_SYSTEM, format_judge_prompt

if TYPE_CHECKING:
    from vocab_drill.providers.base import LLMProvider

_log = logging.getLogger("vocab_drill.judge")

MAX_RETRIES = 3


class JudgeError(Exception):
    """The judge could not produce a verdict."""


class SemanticJudge(Protocol):
    async def __call__(self, submitted: str, expected: str, language: str) -> Judgment:
        ...


class JudgmentCache:
    """Remembers verdicts for (answer, expected, language) triples.

    Owned by a judge instance; entries expire after *max_age* seconds as
    measured by *clock*.
    """

    def __init__(self, max_age: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.max_age = max_age
        self._clock = clock
        self._entries: dict[tuple[str, str, str], tuple[float, Judgment]] = {}

    @staticmethod
    def _key(submitted: str, expected: str, language: str) -> tuple[str, str, str]:
        return submitted.strip().lower(), expected.strip().lower(), language

    def get(self, submitted: str, expected: str, language: str) -> Judgment | None:
        key = self._key(submitted, expected, language)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, judgment = entry
        if self._clock() - stored_at > self.max_age:
            del self._entries[key]
            return None
        return judgment

    def put(self, submitted: str, expected: str, language: str, judgment: Judgment) -> None:
        self._entries[self._key(submitted, expected, language)] = (self._clock(), judgment)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _extract_json(text: str) -> dict | None:
    """Pull the last JSON object out of an LLM reply.

    Handles ``<think>`` blocks, markdown code fences and chatter around the
    object.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()

    m = re.search(r"```(?:json)?\s*\n?({.*?})\s*\n?```", text, re.DOTALL)
    if m:
        try:
            return json.loads(m.group(1))
        except json.JSONDecodeError:
            pass

    decoder = json.JSONDecoder()
    found = None
    pos = text.find("{")
    while pos >= 0:
        try:
            obj, end = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue
        if isinstance(obj, dict):
            found = obj
        pos = text.find("{", end)
    return found


def _parse_judgment(data: dict | None) -> Judgment | None:
    if not data:
        return None
    correct = data.get("correct")
    if isinstance(correct, str) and correct.lower() in ("true", "false"):
        correct = correct.lower() == "true"
    if not isinstance(correct, bool):
        return None
    feedback = data.get("feedback") or ""
    return Judgment(correct=correct, feedback=str(feedback))


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (401, 403)
    # anthropic/openai APIStatusError subclasses carry the HTTP status.
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status in (401, 403)
    return "API key" in str(exc)


class LLMJudge:
    """Asks an LLM whether a submitted translation means the expected one.

    Transport failures are retried with exponential backoff (authentication
    failures are not). A reply that never parses raises ``JudgeError``.
    """

    def __init__(
        self,
        llm: LLMProvider,
        temperature: float = 0.0,
        retries: int = MAX_RETRIES,
        retry_delay: float = 1.0,
        cache: JudgmentCache | None = None,
        thinking: bool = False,
    ):
        self.llm = llm
        self.temperature = temperature
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.cache = cache
        self.thinking = thinking

    async def __call__(self, submitted: str, expected: str, language: str) -> Judgment:
        if self.cache is not None:
            cached = self.cache.get(submitted, expected, language)
            if cached is not None:
                _log.debug("Cache hit for %r vs %r", submitted, expected)
                return cached

        prompt = format_judge_prompt(submitted, expected, language)
        last_error: Exception | None = None
        for attempt in range(self.retries):
            try:
                raw = await self.llm.generate(
                    prompt, temperature=self.temperature, system=JUDGE_SYSTEM, thinking=self.thinking,
                )
            except Exception as e:
                if _is_auth_error(e):
                    raise JudgeError(f"{self.llm.name()} rejected credentials: {e}") from e
                _log.warning("Judge attempt %d/%d failed: %s", attempt + 1, self.retries, e)
                last_error = e
            else:
                judgment = _parse_judgment(_extract_json(raw))
                if judgment is not None:
                    if self.cache is not None:
                        self.cache.put(submitted, expected, language, judgment)
                    return judgment
                _log.warning("Judge attempt %d/%d: unparseable reply", attempt + 1, self.retries)
                last_error = JudgeError(f"Unparseable judge reply: {raw[:200]!r}")

            if attempt < self.retries - 1 and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise JudgeError(f"No verdict after {self.retries} attempts") from last_error
