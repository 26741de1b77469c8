"""
  Catalog entities

  Product stock is tracked per size in a JSON map, e.g. {"S": 10, "M": 5}.
  All stock arithmetic goes through the methods below so the map is never
  driven negative.
"""
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

_WHITESPACE = re.compile(r"\s")
_NON_SLUG = re.compile(r"[^\w-]", re.ASCII)


def generate_slug(name: str) -> str:
    """
    Build a URL-friendly slug from a display name.

    Example:
        "Café Crème Tee" → "cafe-creme-tee"
    """
    no_whitespace = _WHITESPACE.sub("-", name)
    normalized = unicodedata.normalize("NFD", no_whitespace)
    return _NON_SLUG.sub("", normalized).lower()


@dataclass
class Category:
    name: str
    slug: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class Product:
    name: str
    price: Decimal
    category_id: int
    slug: str = ""
    description: str = ""
    category_name: Optional[str] = None
    images: list[str] = field(default_factory=list)
    sizes: dict[str, int] = field(default_factory=dict)
    material: Optional[str] = None
    size_guide: dict[str, dict[str, str]] = field(default_factory=dict)
    occasions_of_use: list[str] = field(default_factory=list)
    is_drop: bool = False
    release_date: Optional[datetime] = None
    is_active: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_available(self) -> bool:
        """True when at least one size has stock left."""
        if not self.sizes:
            return False
        return any(stock is not None and stock > 0 for stock in self.sizes.values())

    def total_stock(self) -> int:
        if not self.sizes:
            return 0
        return sum(stock for stock in self.sizes.values() if stock is not None)

    def stock_for_size(self, size: str) -> int:
        if self.sizes is None:
            return 0
        return self.sizes.get(size) or 0

    def decrease_stock(self, size: str, quantity: int) -> bool:
        """
        Take `quantity` units of `size` out of stock.

        Returns:
            True if the stock was decreased, False if there was not enough
            (the map is left unchanged)
        """
        current = self.stock_for_size(size)
        if current >= quantity:
            self.sizes[size] = current - quantity
            return True
        return False

    def increase_stock(self, size: str, quantity: int) -> None:
        if self.sizes is None:
            self.sizes = {}
        self.sizes[size] = self.stock_for_size(size) + quantity


@dataclass
class Waitlist:
    """Someone waiting for a product (optionally a specific size) to come back."""
    product_id: int
    email: str
    size: Optional[str] = None
    user_id: Optional[int] = None
    notified: bool = False
    notified_at: Optional[datetime] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
