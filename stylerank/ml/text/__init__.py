"""
Text Processing Module
Normalization and controlled vocabularies for fashion catalog text.
"""

from .normalize import (
    build_search_doc,
    normalize_size,
    normalize_text,
    price_range_label,
    tokenize,
)

__all__ = [
    "normalize_text",
    "normalize_size",
    "tokenize",
    "price_range_label",
    "build_search_doc",
]
