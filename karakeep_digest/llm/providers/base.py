"""Abstract interface for text-generation providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig
from ...errors import SummarizationError
from ...utils.logging import log_event, redact_text, truncate_text


class TextProvider(ABC):
    """Provider interface: one prompt in, generated text out.

    Implementations raise SummarizationError when the call fails; callers
    decide how to degrade.
    """

    name = "base"
    default_model = ""

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        log_cfg: LoggingConfig,
        llm_logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cfg = cfg
        self.api_key = api_key
        self.log_cfg = log_cfg
        self.llm_logger = llm_logger
        self.model = cfg.model or self.default_model
        self._transport = transport

    @abstractmethod
    async def complete(self, prompt: str, max_tokens: int) -> str:
        """Return the generated text for the prompt."""
        raise NotImplementedError

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=self.cfg.timeout_seconds,
            trust_env=self.cfg.trust_env,
            transport=self._transport,
        ) as client:
            try:
                resp = await client.post(url, json=payload, headers=headers, params=params)
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPError as exc:
                raise SummarizationError(f"{self.name} request failed: {type(exc).__name__}: {exc}") from exc
            except ValueError as exc:
                raise SummarizationError(f"{self.name} returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SummarizationError(f"{self.name} returned an unexpected payload")
        return data

    def _log_llm_response(self, status: str, content: str, prompt: str) -> None:
        if self.llm_logger is None:
            return
        redaction = self.log_cfg.llm_log_redaction
        payload: dict[str, Any] = {
            "event": "llm_response",
            "status": status,
            "provider": self.name,
            "model": self.model,
            "raw_response": truncate_text(redact_text(content, redaction)),
        }
        if self.log_cfg.llm_log_detail == "prompt_response":
            payload["raw_prompt"] = truncate_text(redact_text(prompt, redaction))
        log_event(self.llm_logger, "LLM response", **payload)
