"""Unit tests for the document classifier fallback chain"""

import json

import pytest

from domain.classification import ClassificationError, DocumentClassifier
from domain.documents import DocumentKind


@pytest.fixture
def classifier() -> DocumentClassifier:
    return DocumentClassifier()


def classify(classifier, body, hint=""):
    return classifier.classify(json.dumps(body), hint)


class TestNestedDocuments:
    """Branches 1 and 2: nested productData / orderData"""

    def test_nested_product_data(self, classifier):
        """Test nested productData is a product regardless of content"""
        doc = classify(classifier, {"productData": {}})

        assert doc.kind is DocumentKind.PRODUCT
        assert doc.product is not None
        assert doc.product.sku is None

    def test_nested_order_data(self, classifier):
        """Test nested orderData is an order regardless of content"""
        doc = classify(classifier, {"orderData": {"marketplace": "ZAWISZA-X", "number": "123"}}, "order")

        assert doc.kind is DocumentKind.ORDER
        assert doc.order.number == "123"
        assert doc.order.marketplace == "ZAWISZA-X"

    def test_nested_order_data_with_null_lines(self, classifier):
        """Test nested orderData with null orderItems is an order without lines"""
        doc = classify(classifier, {"orderData": {"number": "1", "orderItems": None}}, "order")

        assert doc.kind is DocumentKind.ORDER
        assert doc.order.order_items == []
        assert doc.line_item_count == 0

    def test_product_data_wins_over_order_hint(self, classifier):
        """Test nested productData beats a hint of 'order'"""
        doc = classify(classifier, {"productData": {"sku": "P-1"}, "number": "55"}, "order")

        assert doc.kind is DocumentKind.PRODUCT
        assert doc.product.sku == "P-1"

    def test_product_data_wins_over_order_data(self, classifier):
        """Test productData is checked before orderData"""
        doc = classify(classifier, {"productData": {"sku": "P-1"}, "orderData": {"number": "1"}})

        assert doc.kind is DocumentKind.PRODUCT

    def test_null_nested_data_is_unrecognized(self, classifier):
        """Test a null nested document degrades to unrecognized"""
        doc = classify(classifier, {"productData": None})

        assert doc.kind is DocumentKind.UNRECOGNIZED

    def test_undecodable_nested_data_raises(self, classifier):
        """Test a nested document of the wrong shape is a ClassificationError"""
        with pytest.raises(ClassificationError):
            classify(classifier, {"orderData": "not-an-object"})


class TestHintBranches:
    """Branches 3 and 4: type hint driven decoding"""

    def test_product_hint_accepts_any_decodable_body(self, classifier):
        """Test hint containing 'product' accepts a body without SKU"""
        doc = classify(classifier, {"name": "Widget"}, "Product.Updated")

        assert doc.kind is DocumentKind.PRODUCT
        assert doc.product.name == "Widget"

    def test_order_hint_accepts_any_decodable_body(self, classifier):
        """Test hint containing 'order' accepts a body without number"""
        doc = classify(classifier, {"marketplace": "Allegro"}, "ORDER_CREATED")

        assert doc.kind is DocumentKind.ORDER
        assert doc.order.number is None

    def test_order_hint_with_sku_body_falls_to_product(self, classifier):
        """Test an order hint whose body fails order decoding falls to the SKU branch"""
        doc = classify(classifier, {"sku": "ABC", "orderItems": "not-a-list"}, "order")

        assert doc.kind is DocumentKind.PRODUCT
        assert doc.product.sku == "ABC"

    def test_order_hint_undecodable_without_sku_is_unrecognized(self, classifier):
        """Test an order hint whose body fails every branch is unrecognized"""
        doc = classify(classifier, {"orderItems": "not-a-list"}, "order")

        assert doc.kind is DocumentKind.UNRECOGNIZED

    def test_product_hint_checked_before_order_hint(self, classifier):
        """Test a hint naming both kinds prefers product"""
        doc = classify(classifier, {"number": "9"}, "product-order-sync")

        assert doc.kind is DocumentKind.PRODUCT


class TestFallbackBranches:
    """Branches 5 to 7: discriminating fields"""

    def test_sku_without_hint_is_product(self, classifier):
        """Test a body with SKU and no hint is a product"""
        doc = classify(classifier, {"sku": "SKU-1", "ean": "5901234123457"})

        assert doc.kind is DocumentKind.PRODUCT
        assert doc.product.ean == "5901234123457"

    def test_sku_key_is_case_insensitive(self, classifier):
        """Test 'SKU' matches the sku field"""
        doc = classify(classifier, {"SKU": "SKU-2"})

        assert doc.kind is DocumentKind.PRODUCT
        assert doc.product.sku == "SKU-2"

    def test_number_without_hint_is_order(self, classifier):
        """Test a body with an order number and no hint is an order"""
        doc = classify(classifier, {"number": "ORD/1/2024", "orderItems": [{"quantityOrdered": 2}]})

        assert doc.kind is DocumentKind.ORDER
        assert doc.line_item_count == 1

    def test_number_with_null_marketplace_is_order(self, classifier):
        """Test a null marketplace does not hide an order number"""
        doc = classify(classifier, {"number": "123", "marketplace": None})

        assert doc.kind is DocumentKind.ORDER
        assert doc.order.number == "123"
        assert doc.order.marketplace == ""

    def test_sku_beats_number(self, classifier):
        """Test SKU branch runs before the order number branch"""
        doc = classify(classifier, {"sku": "S", "number": "N"})

        assert doc.kind is DocumentKind.PRODUCT

    def test_unknown_body_is_unrecognized(self, classifier):
        """Test a body with neither discriminator is unrecognized"""
        doc = classify(classifier, {"foo": 1})

        assert doc.kind is DocumentKind.UNRECOGNIZED
        assert doc.product is None
        assert doc.order is None


class TestChangeType:
    """changeType is captured independently of the matched branch"""

    @pytest.mark.parametrize("body", [
        {"changeType": "update", "productData": {"sku": "A"}},
        {"changeType": "update", "orderData": {"number": "1"}},
        {"changeType": "update", "foo": "bar"},
    ])
    def test_change_type_captured(self, classifier, body):
        """Test changeType is attached for every kind"""
        assert classify(classifier, body).change_type == "update"

    def test_change_type_absent(self, classifier):
        """Test missing changeType yields None"""
        assert classify(classifier, {"sku": "A"}).change_type is None


class TestMalformedBodies:
    """Structural failures raise ClassificationError"""

    def test_invalid_json(self, classifier):
        """Test invalid JSON raises ClassificationError"""
        with pytest.raises(ClassificationError):
            classifier.classify("{not json", "order")

    def test_non_object_root(self, classifier):
        """Test a JSON array root raises ClassificationError"""
        with pytest.raises(ClassificationError):
            classifier.classify("[1, 2, 3]", "")
