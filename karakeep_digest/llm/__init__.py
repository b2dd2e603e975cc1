"""Text-generation providers, prompts, response parsing and tracing."""

from .json_parser import parse_json_response
from .prompts import build_article_prompt, build_cluster_prompt
from .providers import TextProvider, available_providers, create_provider

__all__ = [
    "TextProvider",
    "available_providers",
    "build_article_prompt",
    "build_cluster_prompt",
    "create_provider",
    "parse_json_response",
]
