from __future__ import annotations

import os

from vocab_drill.providers.base import LLMProvider


class AnthropicProvider(LLMProvider):
    """Claude via the Messages API. Judge replies are short, so the token cap is low."""

    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = 256):
        import anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        )
        self.model = model
        self.max_tokens = max_tokens

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        system: str | None = None,
        thinking: bool = True,
    ) -> str:
        kwargs = {}
        if system:
            kwargs["system"] = system
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        return "".join(block.text for block in message.content if block.type == "text")

    def name(self) -> str:
        return f"anthropic/{self.model}"
