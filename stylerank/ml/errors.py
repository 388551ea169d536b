"""
Error Taxonomy
Exceptions raised by search, recommendation, and embedding caching.
"""

from typing import Any, Dict, Optional, Union


class StyleRankError(Exception):
    """Base exception for StyleRank errors."""

    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": {
                "message": self.message,
                "type": self.__class__.__name__,
                "retryable": self.retryable,
                "details": self.details,
            }
        }


class ItemNotFound(StyleRankError):
    """Raised when a base item id is not in the catalog."""

    def __init__(self, item_id: Union[int, str]):
        super().__init__(
            message=f"Item not found: {item_id}",
            details={"resource": "item", "id": item_id},
        )
        self.item_id = item_id


class ProviderUnavailable(StyleRankError):
    """Raised when the embedding provider fails or times out."""

    retryable = True


class CacheCorrupt(StyleRankError):
    """Raised when a persisted embedding cache disagrees with the catalog."""


class InvalidWeights(StyleRankError):
    """Raised for weight overrides with missing keys or non-finite values."""


class EmptyCandidatePool(StyleRankError):
    """Raised internally when filtering leaves no eligible candidates."""
