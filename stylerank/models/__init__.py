"""
Data Models Package
Catalog domain entities.
"""

from .product import Item, StockStatus

__all__ = [
    "Item",
    "StockStatus",
]
