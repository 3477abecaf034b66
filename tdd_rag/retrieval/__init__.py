"""Retrieval of similar chunks and context-document assembly."""

from .augmenter import (
    ContextDocument,
    RetrievalAugmenter,
    RetrievalResult,
    filter_untested,
    format_chunks,
)

__all__ = [
    "ContextDocument",
    "RetrievalAugmenter",
    "RetrievalResult",
    "filter_untested",
    "format_chunks",
]
