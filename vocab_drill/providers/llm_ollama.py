from __future__ import annotations

import logging
import time

import httpx

from vocab_drill.providers.base import LLMProvider

log = logging.getLogger("vocab_drill.llm")


class OllamaProvider(LLMProvider):
    def __init__(self, base_url: str = "http://localhost:11434", model: str = "qwen3:8b"):
        self.base_url = base_url.rstrip("/")
        self.model = model

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        system: str | None = None,
        thinking: bool = True,
    ) -> str:
        log.info("── PROMPT (%s) ──\n%s", self.model, prompt)
        body: dict = {
            "model": self.model,
            "prompt": prompt,
            "temperature": temperature,
            "stream": False,
            "think": thinking,
            "format": "json",
        }
        if system:
            body["system"] = system

        t0 = time.monotonic()
        async with httpx.AsyncClient(timeout=60.0) as client:
            resp = await client.post(f"{self.base_url}/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()
        elapsed = time.monotonic() - t0
        response = data["response"]
        log.info("── RESPONSE (%.1fs, %s tokens) ──\n%s", elapsed, data.get("eval_count", "?"), response)
        return response

    def name(self) -> str:
        return f"ollama/{self.model}"
