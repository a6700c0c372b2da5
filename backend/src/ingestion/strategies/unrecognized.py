"""Catch-all strategy for bodies the classifier did not recognize."""

from typing import List, Optional

from domain.documents import ClassifiedDocument
from domain.work_items import WorkItemStatus, WorkScope
from models.work_item import WorkItem
from ..ports import ProcessingContext
from .base import WorkItemStrategy


class UnrecognizedStrategy(WorkItemStrategy):
    """Queues an UNRECOGNIZED-scope work item for manual triage.

    The request payload stays empty; the raw body is kept for inspection.
    """

    name = "unrecognized"

    def can_handle(self, document: ClassifiedDocument) -> bool:
        return not document.is_recognized

    def line_item_count(self, context: ProcessingContext) -> Optional[int]:
        return None

    def build_items(self, context: ProcessingContext) -> List[WorkItem]:
        return [
            WorkItem(
                tenant_id=context.config.default_tenant_id,
                scope=WorkScope.UNRECOGNIZED.value,
                status=WorkItemStatus.PENDING.value,
                request_payload="",
                description="",
                target_id=0,
                change_type=context.document.change_type or "",
                raw_body=context.plaintext,
            )
        ]
