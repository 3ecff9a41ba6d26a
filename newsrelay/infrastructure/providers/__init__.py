"""Upstream adapters for NewsAPI, The Guardian and Gemini."""

from .base import ArticleProvider, TextGenerator
from .gemini_provider import GeminiProvider
from .guardian_provider import GuardianProvider
from .newsapi_provider import NewsAPIProvider

__all__ = [
    "ArticleProvider",
    "TextGenerator",
    "GeminiProvider",
    "GuardianProvider",
    "NewsAPIProvider",
]
