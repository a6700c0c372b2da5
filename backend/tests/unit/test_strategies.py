"""Unit tests for processing strategies and the dispatcher.

Stores and audit sink are mocked; persistence is covered by the
integration tests.
"""

from itertools import count
from unittest.mock import MagicMock, Mock

import pytest

from audit.service import WORK_ITEM_CREATED
from config import IngestionConfig
from domain.documents import (
    ClassifiedDocument,
    DocumentKind,
    OrderDocument,
    ProductDocument,
)
from domain.work_items import WorkItemStatus, WorkScope
from ingestion.dispatcher import (
    STRATEGY_PRIORITY,
    NoStrategyError,
    StrategyDispatcher,
)
from ingestion.ports import ProcessingContext
from ingestion.strategies import (
    OrderStrategy,
    ProductStrategy,
    UnrecognizedStrategy,
    WorkItemStrategy,
)

DEFAULT_TENANT = 1
SECONDARY_TENANT = 2


def make_store():
    """Mock WorkQueueStore assigning sequential ids on add()."""
    ids = count(100)
    store = MagicMock()

    def _add(item):
        item.id = next(ids)
        return item

    store.add.side_effect = _add
    return store


def make_context(document, plaintext='{"x": 1}', type_hint="", **config_overrides):
    config = IngestionConfig(
        encryption_key="unused",
        default_tenant_id=DEFAULT_TENANT,
        secondary_tenant_id=config_overrides.pop("secondary_tenant_id", SECONDARY_TENANT),
        marketplace_marker=config_overrides.pop("marketplace_marker", "ZAWISZA"),
        product_fanout=config_overrides.pop("product_fanout", False),
    )
    return ProcessingContext(
        correlation_id="guid-1",
        type_hint=type_hint,
        plaintext=plaintext,
        document=document,
        config=config,
        store=make_store(),
        relations=Mock(),
        audit=Mock(),
    )


def order_doc(marketplace="Allegro", number="1", items=0):
    order = OrderDocument(
        marketplace=marketplace,
        number=number,
        order_items=[{"quantityOrdered": 1} for _ in range(items)],
    )
    return ClassifiedDocument.of_order(order, change_type="create")


def product_doc(sku="SKU-1"):
    return ClassifiedDocument.of_product(ProductDocument(sku=sku))


class TestProductStrategy:
    """Test product work item creation"""

    def test_can_handle(self):
        """Test product strategy accepts only products"""
        strategy = ProductStrategy()
        assert strategy.can_handle(product_doc()) is True
        assert strategy.can_handle(order_doc()) is False
        assert strategy.can_handle(ClassifiedDocument.unrecognized()) is False

    def test_creates_one_pending_item_for_default_tenant(self):
        """Test a single product-scope item for the default tenant"""
        context = make_context(product_doc(), plaintext='{"sku": "SKU-1"}', type_hint="product.updated")

        result = ProductStrategy().process(context)

        assert len(result.created_items) == 1
        item = result.created_items[0]
        assert item.tenant_id == DEFAULT_TENANT
        assert item.scope == WorkScope.PRODUCT.value
        assert item.status == WorkItemStatus.PENDING.value
        assert item.target_id == 0
        assert item.raw_body == '{"sku": "SKU-1"}'
        assert '"sku": "SKU-1"' in item.request_payload
        assert item.correlation_id == "guid-1"

    def test_change_type_falls_back_to_type_hint(self):
        """Test products record the webhook type when there is no changeType"""
        context = make_context(product_doc(), type_hint="product.updated")

        item = ProductStrategy().process(context).created_items[0]

        assert item.change_type == "product.updated"

    def test_fanout_creates_item_per_tenant(self):
        """Test product fan-out adds a secondary tenant item"""
        context = make_context(product_doc(), product_fanout=True)

        result = ProductStrategy().process(context)

        assert [i.tenant_id for i in result.created_items] == [DEFAULT_TENANT, SECONDARY_TENANT]

    def test_fanout_without_secondary_tenant(self):
        """Test fan-out with no secondary tenant creates one item"""
        context = make_context(product_doc(), product_fanout=True, secondary_tenant_id=None)

        result = ProductStrategy().process(context)

        assert len(result.created_items) == 1

    def test_audit_recorded(self):
        """Test each created item is audited with the correlation id"""
        context = make_context(product_doc())

        result = ProductStrategy().process(context)

        context.audit.record.assert_called_once()
        args, kwargs = context.audit.record.call_args
        assert args[0] == WORK_ITEM_CREATED
        assert kwargs["entity_id"] == result.created_items[0].id
        assert kwargs["correlation_id"] == "guid-1"
        assert "line_items" not in kwargs["metadata"]


class TestOrderStrategy:
    """Test order work item creation and tenant routing"""

    def test_marker_routes_to_secondary_tenant(self):
        """Test marketplace containing the marker goes to the secondary tenant"""
        context = make_context(order_doc(marketplace="ZAWISZA-X"))

        item = OrderStrategy().process(context).created_items[0]

        assert item.tenant_id == SECONDARY_TENANT
        assert item.scope == WorkScope.ORDER.value
        assert item.status == WorkItemStatus.PENDING.value

    def test_marker_is_case_insensitive(self):
        """Test marker matching ignores case"""
        context = make_context(order_doc(marketplace="shop-zawisza"))

        assert OrderStrategy().route_tenant(context) == SECONDARY_TENANT

    def test_other_marketplace_routes_to_default(self):
        """Test unmarked marketplaces go to the default tenant"""
        context = make_context(order_doc(marketplace="Allegro"))

        assert OrderStrategy().route_tenant(context) == DEFAULT_TENANT

    def test_no_marker_configured(self):
        """Test without a marker every order goes to the default tenant"""
        context = make_context(order_doc(marketplace="ZAWISZA"), marketplace_marker=None)

        assert OrderStrategy().route_tenant(context) == DEFAULT_TENANT

    def test_marker_without_secondary_tenant(self):
        """Test a marker match with no secondary tenant falls back to default"""
        context = make_context(order_doc(marketplace="ZAWISZA"), secondary_tenant_id=None)

        assert OrderStrategy().route_tenant(context) == DEFAULT_TENANT

    def test_audit_includes_line_item_count(self):
        """Test audit metadata carries the order line count"""
        context = make_context(order_doc(items=3))

        OrderStrategy().process(context)

        metadata = context.audit.record.call_args.kwargs["metadata"]
        assert metadata["line_items"] == 3
        assert metadata["change_type"] == "create"

    def test_failure_propagates(self):
        """Test store failures are re-raised, not swallowed"""
        context = make_context(order_doc())
        context.store.add.side_effect = RuntimeError("store down")

        with pytest.raises(RuntimeError, match="store down"):
            OrderStrategy().process(context)

        context.audit.record.assert_not_called()


class TestWorkItemStrategy:
    """Test the shared strategy base"""

    def test_build_items_is_abstract(self):
        """Test a strategy without build_items cannot be instantiated"""

        class IncompleteStrategy(WorkItemStrategy):
            name = "incomplete"

            def can_handle(self, document):
                return True

        with pytest.raises(TypeError):
            IncompleteStrategy()


class TestUnrecognizedStrategy:
    """Test the catch-all strategy"""

    def test_can_handle_only_unrecognized(self):
        """Test catch-all accepts only unrecognized documents"""
        strategy = UnrecognizedStrategy()
        assert strategy.can_handle(ClassifiedDocument.unrecognized()) is True
        assert strategy.can_handle(product_doc()) is False

    def test_sentinel_item(self):
        """Test sentinel scope, empty payload and preserved raw body"""
        context = make_context(ClassifiedDocument.unrecognized(), plaintext='{"foo":1}')

        item = UnrecognizedStrategy().process(context).created_items[0]

        assert item.scope == WorkScope.UNRECOGNIZED.value
        assert item.status == WorkItemStatus.PENDING.value
        assert item.request_payload == ""
        assert item.raw_body == '{"foo":1}'
        assert item.tenant_id == DEFAULT_TENANT


class TestStrategyDispatcher:
    """Test strategy selection"""

    def test_priority_is_fixed(self):
        """Test catch-all is always last in the priority sequence"""
        assert STRATEGY_PRIORITY == (
            DocumentKind.PRODUCT,
            DocumentKind.ORDER,
            DocumentKind.UNRECOGNIZED,
        )

    @pytest.mark.parametrize("document, expected", [
        (product_doc(), ProductStrategy),
        (order_doc(), OrderStrategy),
        (ClassifiedDocument.unrecognized(), UnrecognizedStrategy),
    ])
    def test_select(self, document, expected):
        """Test each kind maps to its strategy"""
        assert isinstance(StrategyDispatcher().select(document), expected)

    def test_mapping_order_does_not_matter(self):
        """Test selection follows STRATEGY_PRIORITY, not the mapping order"""
        greedy = Mock()
        greedy.can_handle.return_value = True
        greedy.name = "greedy"
        product = ProductStrategy()

        dispatcher = StrategyDispatcher({
            DocumentKind.UNRECOGNIZED: greedy,
            DocumentKind.PRODUCT: product,
        })

        assert dispatcher.select(product_doc()) is product

    def test_missing_catch_all_raises(self):
        """Test NoStrategyError when no strategy accepts the document"""
        dispatcher = StrategyDispatcher({DocumentKind.PRODUCT: ProductStrategy()})

        with pytest.raises(NoStrategyError):
            dispatcher.select(ClassifiedDocument.unrecognized())

    def test_dispatch_invokes_selected_strategy(self):
        """Test dispatch runs exactly the selected strategy"""
        context = make_context(order_doc())

        result = StrategyDispatcher().dispatch(context)

        assert result.strategy == "order"
        assert len(result.created_items) == 1
