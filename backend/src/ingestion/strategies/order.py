"""Order strategy - one order-scope work item, routed by marketplace."""

import logging
from typing import List

from domain.documents import ClassifiedDocument, DocumentKind
from domain.work_items import WorkItemStatus, WorkScope
from models.work_item import WorkItem
from ..ports import ProcessingContext
from .base import WorkItemStrategy

logger = logging.getLogger(__name__)


class OrderStrategy(WorkItemStrategy):
    """Queues sales orders.

    Orders whose marketplace contains the configured marker (case-insensitive)
    go to the secondary tenant; all others go to the default tenant.
    """

    name = "order"

    def can_handle(self, document: ClassifiedDocument) -> bool:
        return document.kind is DocumentKind.ORDER and document.order is not None

    def route_tenant(self, context: ProcessingContext) -> int:
        config = context.config
        marketplace = context.document.order.marketplace or ""
        marker = config.marketplace_marker

        if marker and marker.casefold() in marketplace.casefold():
            if config.secondary_tenant_id is not None:
                return config.secondary_tenant_id
            logger.warning(
                f"Marketplace '{marketplace}' matches marker '{marker}' but no "
                f"secondary tenant is configured; using default tenant",
                extra={"tenant_id": config.default_tenant_id}
            )
        return config.default_tenant_id

    def build_items(self, context: ProcessingContext) -> List[WorkItem]:
        order = context.document.order
        return [
            WorkItem(
                tenant_id=self.route_tenant(context),
                scope=WorkScope.ORDER.value,
                status=WorkItemStatus.PENDING.value,
                request_payload=order.to_payload(),
                description="",
                target_id=0,
                change_type=context.document.change_type or "",
                raw_body=context.plaintext,
            )
        ]
