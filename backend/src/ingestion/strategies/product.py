"""Product strategy - one product-scope work item per target tenant."""

from typing import List

from domain.documents import ClassifiedDocument, DocumentKind
from domain.work_items import WorkItemStatus, WorkScope
from models.work_item import WorkItem
from ..ports import ProcessingContext
from .base import WorkItemStrategy


class ProductStrategy(WorkItemStrategy):
    """Queues product master data updates.

    Work items go to the default tenant. With product fan-out enabled and a
    distinct secondary tenant configured, the secondary tenant gets its own
    work item in the same unit.
    """

    name = "product"

    def can_handle(self, document: ClassifiedDocument) -> bool:
        return document.kind is DocumentKind.PRODUCT and document.product is not None

    def target_tenant_ids(self, context: ProcessingContext) -> List[int]:
        config = context.config
        tenant_ids = [config.default_tenant_id]
        if (
            config.product_fanout
            and config.secondary_tenant_id is not None
            and config.secondary_tenant_id != config.default_tenant_id
        ):
            tenant_ids.append(config.secondary_tenant_id)
        return tenant_ids

    def build_items(self, context: ProcessingContext) -> List[WorkItem]:
        product = context.document.product
        payload = product.to_payload()
        # Products record the change kind, or the webhook type when there is none
        change_type = context.document.change_type or context.type_hint or ""

        return [
            WorkItem(
                tenant_id=tenant_id,
                scope=WorkScope.PRODUCT.value,
                status=WorkItemStatus.PENDING.value,
                request_payload=payload,
                description="",
                target_id=0,
                change_type=change_type,
                raw_body=context.plaintext,
            )
            for tenant_id in self.target_tenant_ids(context)
        ]
