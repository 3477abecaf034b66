"""Code-aware indexing and retrieval for test-driven development assistants."""

__version__ = "0.1.0"
