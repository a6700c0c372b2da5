"""Document classifier - turns decrypted webhook JSON into a ClassifiedDocument.

Classification walks a fixed fallback chain and stops at the first success:

1. nested ``productData`` object → product (always accepted)
2. nested ``orderData`` object → order (always accepted)
3. type hint contains "product" → whole body as product, if it decodes
4. type hint contains "order" → whole body as order, if it decodes
5. whole body as product, if it decodes and carries a SKU
6. whole body as order, if it decodes and carries an order number
7. unrecognized

Several branches can match the same payload, so the order is part of the
contract. A top-level ``changeType`` is attached whichever branch matched.
"""

import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import ValidationError

from domain.documents import (
    ClassifiedDocument,
    MarketplaceDocument,
    OrderDocument,
    ProductDocument,
)

logger = logging.getLogger(__name__)

PRODUCT_DATA_KEY = "productData"
ORDER_DATA_KEY = "orderData"
CHANGE_TYPE_KEY = "changeType"

DocumentT = TypeVar("DocumentT", bound=MarketplaceDocument)


class ClassificationError(Exception):
    """Raised when the payload is structurally unusable (not JSON, not an object,
    or a nested document that cannot be decoded)."""
    pass


class DocumentClassifier:
    """Stateless classifier; a single instance may be shared across requests.

    Example:
        classifier = DocumentClassifier()
        doc = classifier.classify('{"orderData": {"number": "1"}}', "order.created")
        assert doc.kind is DocumentKind.ORDER
    """

    def classify(self, plaintext: str, type_hint: Optional[str]) -> ClassifiedDocument:
        """Classify a decrypted webhook body.

        Args:
            plaintext: Decrypted JSON body
            type_hint: Declared webhook type (may be empty or None)

        Returns:
            ClassifiedDocument tagged PRODUCT, ORDER or UNRECOGNIZED

        Raises:
            ClassificationError: If the body is not a JSON object or a nested
                productData / orderData value cannot be decoded
        """
        root = self._parse_root(plaintext)
        change_type = self._extract_change_type(root)
        hint = (type_hint or "").lower()

        # 1. Nested productData
        if PRODUCT_DATA_KEY in root:
            product = self._decode_nested(ProductDocument, root[PRODUCT_DATA_KEY], PRODUCT_DATA_KEY)
            if product is None:
                return ClassifiedDocument.unrecognized(change_type)
            logger.debug("Classified via nested productData")
            return ClassifiedDocument.of_product(product, change_type)

        # 2. Nested orderData
        if ORDER_DATA_KEY in root:
            order = self._decode_nested(OrderDocument, root[ORDER_DATA_KEY], ORDER_DATA_KEY)
            if order is None:
                return ClassifiedDocument.unrecognized(change_type)
            logger.debug("Classified via nested orderData")
            return ClassifiedDocument.of_order(order, change_type)

        # 3. Hint names a product
        if "product" in hint:
            product = self._try_decode(ProductDocument, root)
            if product is not None:
                logger.debug("Classified as product from type hint")
                return ClassifiedDocument.of_product(product, change_type)

        # 4. Hint names an order
        if "order" in hint:
            order = self._try_decode(OrderDocument, root)
            if order is not None:
                logger.debug("Classified as order from type hint")
                return ClassifiedDocument.of_order(order, change_type)

        # 5. Product fallback, SKU required
        product = self._try_decode(ProductDocument, root)
        if product is not None and product.sku is not None:
            logger.debug("Classified as product (fallback)")
            return ClassifiedDocument.of_product(product, change_type)

        # 6. Order fallback, order number required
        order = self._try_decode(OrderDocument, root)
        if order is not None and order.number is not None:
            logger.debug("Classified as order (fallback)")
            return ClassifiedDocument.of_order(order, change_type)

        logger.warning(
            "Webhook body not recognized as product or order",
            extra={"type_hint": type_hint}
        )
        return ClassifiedDocument.unrecognized(change_type)

    @staticmethod
    def _parse_root(plaintext: str) -> Dict[str, Any]:
        try:
            root = json.loads(plaintext)
        except (TypeError, ValueError) as e:
            logger.error(f"Webhook body is not valid JSON: {e}")
            raise ClassificationError(f"Webhook body is not valid JSON: {e}") from e

        if not isinstance(root, dict):
            raise ClassificationError(
                f"Webhook body must be a JSON object, got {type(root).__name__}"
            )
        return root

    @staticmethod
    def _extract_change_type(root: Dict[str, Any]) -> Optional[str]:
        value = root.get(CHANGE_TYPE_KEY)
        if value is None:
            return None
        return str(value)

    @staticmethod
    def _decode_nested(
        model: Type[DocumentT],
        value: Any,
        key: str
    ) -> Optional[DocumentT]:
        """Decode a nested document; null yields None, anything undecodable raises."""
        if value is None:
            logger.warning(f"Nested {key} is null")
            return None
        try:
            return model.model_validate(value)
        except ValidationError as e:
            logger.error(f"Nested {key} could not be decoded: {e}")
            raise ClassificationError(f"Nested {key} could not be decoded") from e

    @staticmethod
    def _try_decode(model: Type[DocumentT], root: Dict[str, Any]) -> Optional[DocumentT]:
        try:
            return model.model_validate(root)
        except ValidationError as e:
            logger.debug(f"Body did not decode as {model.__name__}: {e.error_count()} errors")
            return None
