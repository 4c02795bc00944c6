"""
Generation providers for Caption Engine.

Adapters that turn provider fields into raw candidate captions.
"""

from .base import ProviderAdapter, ProviderError
from .openai_adapter import OpenAIProviderAdapter
from .template import TemplateProviderAdapter

__all__ = [
    "ProviderAdapter",
    "ProviderError",
    "OpenAIProviderAdapter",
    "TemplateProviderAdapter",
]
