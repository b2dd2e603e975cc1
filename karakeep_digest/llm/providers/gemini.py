"""Google Gemini provider."""

from __future__ import annotations

from typing import Any

from ...errors import SummarizationError
from ..tracing import generation_span, set_span_output
from .base import TextProvider

GEMINI_API_URL = "https://generativelanguage.googleapis.com"


class GeminiProvider(TextProvider):
    name = "gemini"
    default_model = "gemini-2.0-flash"

    async def complete(self, prompt: str, max_tokens: int) -> str:
        if not self.api_key:
            raise SummarizationError("Missing Google API key")
        base_url = (self.cfg.base_url or GEMINI_API_URL).rstrip("/")
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.2, "maxOutputTokens": max_tokens},
        }
        with generation_span(self.name, self.model, prompt, max_tokens) as span:
            try:
                data = await self._post_json(
                    f"{base_url}/v1beta/models/{self.model}:generateContent",
                    payload,
                    params={"key": self.api_key},
                )
                content = _extract_text(data)
                if not content:
                    raise SummarizationError("Gemini response contained no text")
            except SummarizationError as exc:
                self._log_llm_response("provider_error", str(exc), prompt)
                raise
            set_span_output(span, content)
            self._log_llm_response("ok", content, prompt)
            return content


def _extract_text(data: dict[str, Any]) -> str:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"].strip()
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
