"""
Catalog item model.
Validation and canonicalization of catalog entries used by search and recommendation.
"""

import re
from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..ml.text.normalize import build_search_doc, normalize_size, normalize_text
from ..ml.text.taxonomy import COLORS, MATERIALS


class StockStatus(str, Enum):
    """Item stock status options."""

    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


def _clean_price(v: Any) -> Optional[float]:
    """Parse a price value, stripping currency symbols and separators."""
    if v is None or v == "" or v == "N/A":
        return None

    if isinstance(v, str):
        # Remove currency symbols, words and whitespace
        v = re.sub(r"(?i)[£$€₹,\s]|\brs\.?|\binr\b|\busd\b", "", v)
        if not v:
            return None

    try:
        value = float(v)
    except (TypeError, ValueError):
        return None

    return value if np.isfinite(value) else None


def _canonical_term(value: str, vocabulary) -> str:
    """
    Reduce an attribute to one canonical term.

    Synonyms are mapped first, then the last vocabulary word wins
    ("Navy Blue" -> "blue", "Dark Grey" -> "gray"). Unknown values are kept
    as normalized text.
    """
    normalized = normalize_text(value)
    known = [word for word in normalized.split() if word in vocabulary]
    return known[-1] if known else normalized


class Item(BaseModel):
    """
    Immutable catalog entry.

    Optional attributes use None as the single "unknown" state: blank strings
    collapse to None on construction. Color and material are canonicalized
    through the synonym maps and the search document is derived from the
    other fields when not supplied.
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        arbitrary_types_allowed=True,
    )

    id: Union[int, str]
    name: str

    # === CATEGORIZATION ===
    category: Optional[str] = None
    brand: Optional[str] = None

    # === FASHION ATTRIBUTES ===
    size: Optional[str] = None
    color: Optional[str] = None
    material: Optional[str] = None
    occasion: Optional[str] = None
    age_group: Optional[str] = None
    description: Optional[str] = None

    # === PRICING ===
    price_listed: Optional[float] = None
    price: Optional[float] = None  # final price

    # === STOCK & MEDIA ===
    in_stock: bool = True
    image_url: Optional[str] = None

    # === DERIVED ===
    search_doc: str = ""
    embedding: Optional[np.ndarray] = Field(default=None, repr=False)

    # === VALIDATORS ===

    @model_validator(mode="before")
    @classmethod
    def derive_search_doc(cls, data):
        """Build the weighted search document when one is not supplied."""
        if not isinstance(data, dict) or data.get("search_doc"):
            return data

        fields = dict(data)
        fields["size"] = normalize_size(fields.get("size"))
        fields["price"] = _clean_price(fields.get("price"))
        return {**data, "search_doc": build_search_doc(fields)}

    @field_validator(
        "category",
        "brand",
        "size",
        "color",
        "material",
        "occasion",
        "age_group",
        "description",
        "image_url",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        """Collapse blank strings to None."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("category", "brand", "occasion", "age_group")
    @classmethod
    def lower_case(cls, v):
        return v.lower() if v else v

    @field_validator("color")
    @classmethod
    def canonical_color(cls, v):
        """Map color synonyms to their canonical color (crimson -> red)."""
        if not v:
            return v
        return _canonical_term(v, COLORS)

    @field_validator("material")
    @classmethod
    def canonical_material(cls, v):
        """Map material synonyms to their canonical material (satin -> silk)."""
        if not v:
            return v
        return _canonical_term(v, MATERIALS)

    @field_validator("size")
    @classmethod
    def canonical_size(cls, v):
        return normalize_size(v)

    @field_validator("price_listed", "price", mode="before")
    @classmethod
    def clean_price(cls, v):
        """Clean and validate price fields."""
        return _clean_price(v)

    @field_validator("in_stock", mode="before")
    @classmethod
    def parse_in_stock(cls, v):
        """Parse various in_stock representations."""
        if v is None:
            return True

        if isinstance(v, StockStatus):
            return v == StockStatus.IN_STOCK

        if isinstance(v, str):
            v_lower = v.lower().strip()
            if v_lower in ["1", "true", "yes", "y", "in stock", "in_stock", "available"]:
                return True
            if v_lower in ["0", "false", "no", "n", "out of stock", "out_of_stock", "unavailable"]:
                return False

        return v

    @field_validator("embedding", mode="before")
    @classmethod
    def coerce_embedding(cls, v):
        """Store embeddings as 1-D float32 arrays."""
        if v is None:
            return None
        arr = np.asarray(v, dtype=np.float32)
        if arr.ndim != 1:
            raise ValueError(f"Embedding must be 1-D, got shape {arr.shape}")
        return arr

    # === METHODS ===

    @property
    def stock_status(self) -> StockStatus:
        return StockStatus.IN_STOCK if self.in_stock else StockStatus.OUT_OF_STOCK

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def with_embedding(self, vector: np.ndarray) -> "Item":
        """Return a copy of this item carrying the given embedding."""
        return self.model_copy(update={"embedding": np.asarray(vector, dtype=np.float32)})

    def summary(self) -> Dict[str, Any]:
        """Short description used in response metadata."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "brand": self.brand,
            "color": self.color,
            "price": self.price,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary without heavy fields (embedding, search doc)."""
        data = self.model_dump(exclude={"embedding", "search_doc"})
        data["stock_status"] = self.stock_status.value
        return data
