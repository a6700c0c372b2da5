"""Processing strategies, one per document kind plus the catch-all"""

from .base import WorkItemStrategy
from .product import ProductStrategy
from .order import OrderStrategy
from .unrecognized import UnrecognizedStrategy

__all__ = [
    "WorkItemStrategy",
    "ProductStrategy",
    "OrderStrategy",
    "UnrecognizedStrategy",
]
