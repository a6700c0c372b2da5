"""Commerce documents carried by marketplace webhooks.

ProductDocument and OrderDocument mirror the JSON sent by the marketplace
integration. Keys are camelCase on the wire and matched case-insensitively;
unknown keys are preserved so the serialized request payload handed to the
downstream processor loses nothing.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class MarketplaceDocument(BaseModel):
    """Base for wire documents: camelCase aliases, case-insensitive keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="allow",
    )

    @model_validator(mode="before")
    @classmethod
    def match_keys_case_insensitively(cls, data: Any) -> Any:
        """Rewrite keys such as 'SKU' or 'OrderItems' to their declared alias."""
        if not isinstance(data, dict):
            return data

        aliases = {}
        for name, field in cls.model_fields.items():
            alias = field.alias or name
            aliases[alias.lower()] = alias
            aliases[name.lower()] = alias

        normalized = {}
        for key, value in data.items():
            target = aliases.get(key.lower(), key) if isinstance(key, str) else key
            normalized[target] = value
        return normalized

    def to_payload(self) -> str:
        """Serialize for WorkItem.request_payload (camelCase, indented)."""
        return self.model_dump_json(by_alias=True, indent=2)


class ProductDimensions(MarketplaceDocument):
    x: Optional[Decimal] = None
    y: Optional[Decimal] = None
    z: Optional[Decimal] = None


class ProductDocument(MarketplaceDocument):
    """Product master data. ``sku`` discriminates products from other payloads."""

    id: Optional[int] = None
    sku: Optional[str] = None
    name: Optional[str] = None
    ean: Optional[str] = None
    marketplace: Optional[str] = None
    group: Optional[str] = None
    base_uom: Optional[str] = None
    vat_rate: Optional[str] = None
    producer: Optional[str] = None
    type: Optional[str] = None
    parent_article_sku: Optional[str] = Field(None, alias="parentArticleSKU")
    is_active: Optional[bool] = None
    package_quantity: Optional[Decimal] = None
    weight: Optional[Decimal] = None
    dimensions: Optional[ProductDimensions] = None
    last_modify_date_time: Optional[str] = None


class OrderItemDocument(MarketplaceDocument):
    id: Optional[int] = None
    source_article_sku: Optional[str] = Field(None, alias="sourceArticleSKU")
    quantity_ordered: Optional[Decimal] = None
    price: Optional[Decimal] = None
    vat_rate: Optional[str] = None


class OrderDocument(MarketplaceDocument):
    """Sales order. ``number`` discriminates orders from other payloads."""

    id: Optional[int] = None
    number: Optional[str] = None
    marketplace: str = ""
    type: Optional[int] = None
    parent_order_id: Optional[int] = None
    remarks: Optional[str] = None
    is_cod: Optional[bool] = Field(None, alias="isCOD")
    order_value: Optional[Decimal] = None
    shipment_value: Optional[Decimal] = None
    order_items: List[OrderItemDocument] = Field(default_factory=list)
    recipient: Optional[Dict[str, Any]] = None
    buyer: Optional[Dict[str, Any]] = None
    invoice: Optional[Dict[str, Any]] = None
    last_modify_date_time: Optional[str] = None

    @field_validator("marketplace", mode="before")
    @classmethod
    def marketplace_null_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("order_items", mode="before")
    @classmethod
    def order_items_null_as_empty(cls, v: Any) -> Any:
        """Senders emit ``null`` for orders without lines."""
        return [] if v is None else v


class DocumentKind(str, Enum):
    """Tag of a ClassifiedDocument."""
    PRODUCT = "PRODUCT"
    ORDER = "ORDER"
    UNRECOGNIZED = "UNRECOGNIZED"


@dataclass(frozen=True)
class ClassifiedDocument:
    """Result of classifying one decrypted envelope.

    Exactly one of ``product`` / ``order`` is set for recognized documents,
    neither for UNRECOGNIZED. ``change_type`` comes from the top-level
    ``changeType`` key regardless of which kind matched.
    """
    kind: DocumentKind
    product: Optional[ProductDocument] = None
    order: Optional[OrderDocument] = None
    change_type: Optional[str] = None

    @classmethod
    def of_product(cls, product: ProductDocument, change_type: Optional[str] = None):
        return cls(DocumentKind.PRODUCT, product=product, change_type=change_type)

    @classmethod
    def of_order(cls, order: OrderDocument, change_type: Optional[str] = None):
        return cls(DocumentKind.ORDER, order=order, change_type=change_type)

    @classmethod
    def unrecognized(cls, change_type: Optional[str] = None):
        return cls(DocumentKind.UNRECOGNIZED, change_type=change_type)

    @property
    def is_recognized(self) -> bool:
        return self.kind is not DocumentKind.UNRECOGNIZED

    @property
    def line_item_count(self) -> Optional[int]:
        """Number of order lines, None when the document has no lines."""
        if self.order is not None:
            return len(self.order.order_items)
        return None
