"""OpenAI-compatible translation gateway in front of a native chat/embeddings API."""

__version__ = "0.1.0"
