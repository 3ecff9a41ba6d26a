"""NewsRelay: cache and quota orchestration in front of news and AI providers."""

__version__ = "1.0.0"
