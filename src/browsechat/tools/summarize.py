from __future__ import annotations

from ..client import LLMClient

_PROMPT = "Evaluate the following web page content: {text}"


class Summarizer:
    """One non-streaming model call over extracted text. Errors propagate."""

    def __init__(self, client: LLMClient, model: str, max_chars: int = 12000) -> None:
        self.client = client
        self.model = model
        self.max_chars = max_chars

    async def summarize(self, text: str) -> str:
        if len(text) > self.max_chars:
            text = text[: self.max_chars] + " ...[truncated]"
        prompt = _PROMPT.format(text=text)
        return await self.client.chat_once(self.model, [{"role": "user", "content": prompt}])
