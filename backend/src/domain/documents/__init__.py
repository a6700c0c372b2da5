"""Documents domain module - product and order documents, classification result"""

from .models import (
    MarketplaceDocument,
    ProductDocument,
    ProductDimensions,
    OrderDocument,
    OrderItemDocument,
    DocumentKind,
    ClassifiedDocument,
)

__all__ = [
    "MarketplaceDocument",
    "ProductDocument",
    "ProductDimensions",
    "OrderDocument",
    "OrderItemDocument",
    "DocumentKind",
    "ClassifiedDocument",
]
