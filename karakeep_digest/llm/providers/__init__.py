from .base import TextProvider
from .factory import available_providers, create_provider

__all__ = ["TextProvider", "available_providers", "create_provider"]
