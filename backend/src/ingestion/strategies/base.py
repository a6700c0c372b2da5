"""Shared work item creation for the processing strategies."""

import logging
from abc import abstractmethod
from typing import List, Optional

from audit.service import WORK_ITEM_CREATED
from models.work_item import WorkItem
from observability.metrics import work_items_created_total
from ..ports import ProcessingContext, ProcessingResult, ProcessingStrategy

logger = logging.getLogger(__name__)


class WorkItemStrategy(ProcessingStrategy):
    """Base for strategies that persist the work items they build.

    Subclasses implement can_handle and build_items; persistence, audit and
    logging happen here.
    """

    @abstractmethod
    def build_items(self, context: ProcessingContext) -> List[WorkItem]:
        """Build unsaved work items for one classified document."""
        pass

    def line_item_count(self, context: ProcessingContext) -> Optional[int]:
        return context.document.line_item_count

    def process(self, context: ProcessingContext) -> ProcessingResult:
        try:
            items = self.build_items(context)

            # Savepoint: all items of this call are persisted together or not at all
            with context.store.db.begin_nested():
                for item in items:
                    item.correlation_id = context.correlation_id
                    context.store.add(item)

            for item in items:
                self._record_created(context, item)

            return ProcessingResult(strategy=self.name, created_items=items)

        except Exception as e:
            logger.error(
                f"{self.name} strategy failed: {e}",
                exc_info=True,
                extra={"strategy": self.name, "correlation_id": context.correlation_id}
            )
            raise

    def _record_created(self, context: ProcessingContext, item: WorkItem) -> None:
        metadata = {
            "strategy": self.name,
            "scope": item.scope,
            "type_hint": context.type_hint,
            "change_type": item.change_type,
        }
        line_items = self.line_item_count(context)
        if line_items is not None:
            metadata["line_items"] = line_items

        context.audit.record(
            WORK_ITEM_CREATED,
            tenant_id=item.tenant_id,
            entity_type="work_item",
            entity_id=item.id,
            correlation_id=context.correlation_id,
            metadata=metadata,
        )
        work_items_created_total.labels(strategy=self.name, scope=str(item.scope)).inc()

        logger.info(
            f"Queued work item {item.id} (scope {item.scope}) for tenant {item.tenant_id}",
            extra={
                "strategy": self.name,
                "work_item_id": item.id,
                "tenant_id": item.tenant_id,
                "scope": item.scope,
            }
        )
