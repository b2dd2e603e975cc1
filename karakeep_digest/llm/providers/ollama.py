"""Ollama provider using the non-streaming /api/generate endpoint."""

from __future__ import annotations

from ...errors import SummarizationError
from ..tracing import generation_span, set_span_output
from .base import TextProvider


class OllamaProvider(TextProvider):
    name = "ollama"
    default_model = "llama3"

    def __init__(self, cfg, api_key, log_cfg, llm_logger=None, transport=None):
        super().__init__(cfg, api_key, log_cfg, llm_logger, transport)
        self.model = cfg.ollama_model or cfg.model or self.default_model

    async def complete(self, prompt: str, max_tokens: int) -> str:
        base_url = self.cfg.ollama_url or self.cfg.base_url
        if not base_url:
            raise SummarizationError("Missing Ollama URL")
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"num_predict": max_tokens},
        }
        with generation_span(self.name, self.model, prompt, max_tokens) as span:
            try:
                data = await self._post_json(f"{base_url.rstrip('/')}/api/generate", payload)
                content = str(data.get("response") or "").strip()
                if not content:
                    raise SummarizationError("Ollama response contained no text")
            except SummarizationError as exc:
                self._log_llm_response("provider_error", str(exc), prompt)
                raise
            set_span_output(span, content)
            self._log_llm_response("ok", content, prompt)
            return content
