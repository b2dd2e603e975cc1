"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any

from ...errors import SummarizationError
from ..tracing import generation_span, set_span_output
from .base import TextProvider

ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(TextProvider):
    name = "anthropic"
    default_model = "claude-haiku-4-5"

    async def complete(self, prompt: str, max_tokens: int) -> str:
        if not self.api_key:
            raise SummarizationError("Missing Anthropic API key")
        base_url = (self.cfg.base_url or ANTHROPIC_API_URL).rstrip("/")
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        with generation_span(self.name, self.model, prompt, max_tokens) as span:
            try:
                data = await self._post_json(f"{base_url}/v1/messages", payload, headers=headers)
                content = _extract_text(data)
                if not content:
                    raise SummarizationError("Anthropic response contained no text")
            except SummarizationError as exc:
                self._log_llm_response("provider_error", str(exc), prompt)
                raise
            set_span_output(span, content)
            self._log_llm_response("ok", content, prompt)
            return content


def _extract_text(data: dict[str, Any]) -> str:
    blocks = data.get("content") or []
    parts = [
        block.get("text", "")
        for block in blocks
        if isinstance(block, dict) and block.get("type") == "text"
    ]
    return "".join(parts).strip()
