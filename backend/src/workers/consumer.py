"""Reference downstream consumer for the work queue.

Drains Pending work items the way every consumer must:

1. claim the item (conditional Pending -> Processing)
2. perform the downstream side effect outside any store transaction
3. report Completed with the downstream target id, or Error with a
   readable description (conditional Processing -> terminal)

A claim that loses a race is skipped; the winner processes the item.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from database import SessionLocal
from observability.metrics import work_item_claims_total
from work_queue.retry import run_in_transaction
from work_queue.service import WorkQueueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimedWorkItem:
    """Snapshot of a claimed work item handed to the downstream handler."""
    id: int
    tenant_id: int
    scope: int
    request_payload: str
    raw_body: Optional[str]
    change_type: Optional[str]
    correlation_id: Optional[str]


WorkItemHandler = Callable[[ClaimedWorkItem], int]


class WorkItemConsumer:
    """Polls Pending work items and drives them through their lifecycle.

    Example:
        consumer = WorkItemConsumer(handler=push_to_erp, tenant_id=1)
        stats = consumer.poll_once()
    """

    def __init__(
        self,
        handler: WorkItemHandler,
        session_factory: Callable[[], Session] = SessionLocal,
        tenant_id: Optional[int] = None,
        scope: Optional[int] = None,
        batch_size: int = 10,
    ):
        """Initialize consumer.

        Args:
            handler: Performs the downstream operation and returns its target id;
                any exception marks the work item as Error
            session_factory: Callable returning a new Session
            tenant_id: Only consume this tenant's items
            scope: Only consume items of this scope
            batch_size: Maximum items per poll
        """
        self.handler = handler
        self.session_factory = session_factory
        self.tenant_id = tenant_id
        self.scope = scope
        self.batch_size = batch_size

    def poll_once(self) -> Dict[str, Any]:
        """Process up to batch_size Pending items.

        Returns:
            Dict with processing statistics
        """
        stats = {
            'polled': 0,
            'claimed': 0,
            'completed': 0,
            'failed': 0,
            'skipped': 0,
        }

        pending_ids = run_in_transaction(
            self.session_factory,
            lambda db: [
                item.id
                for item in WorkQueueStore(db).list_pending(
                    tenant_id=self.tenant_id,
                    scope=self.scope,
                    limit=self.batch_size,
                )
            ],
            operation="consumer_poll",
        )
        stats['polled'] = len(pending_ids)

        for item_id in pending_ids:
            claimed = self.claim(item_id)
            if claimed is None:
                stats['skipped'] += 1
                continue

            stats['claimed'] += 1
            if self.process(claimed):
                stats['completed'] += 1
            else:
                stats['failed'] += 1

        logger.info(f"Consumer poll completed: {stats}")
        return stats

    def claim(self, item_id: int) -> Optional[ClaimedWorkItem]:
        """Claim one work item. Returns None if another consumer got it first."""

        def _claim(db: Session) -> Optional[ClaimedWorkItem]:
            store = WorkQueueStore(db)
            if not store.claim(item_id):
                return None
            item = store.get_required(item_id)
            return ClaimedWorkItem(
                id=item.id,
                tenant_id=item.tenant_id,
                scope=item.scope,
                request_payload=item.request_payload,
                raw_body=item.raw_body,
                change_type=item.change_type,
                correlation_id=item.correlation_id,
            )

        claimed = run_in_transaction(self.session_factory, _claim, operation="consumer_claim")
        work_item_claims_total.labels(result="claimed" if claimed else "lost").inc()
        if claimed is None:
            logger.info(
                f"Work item {item_id} already claimed, skipping",
                extra={"work_item_id": item_id}
            )
        return claimed

    def process(self, item: ClaimedWorkItem) -> bool:
        """Run the handler for a claimed item and record the outcome.

        Returns:
            True if the item completed, False if it was marked Error
        """
        try:
            target_id = self.handler(item)
        except Exception as e:
            logger.error(
                f"Handler failed for work item {item.id}: {e}",
                exc_info=True,
                extra={"work_item_id": item.id, "tenant_id": item.tenant_id}
            )
            run_in_transaction(
                self.session_factory,
                lambda db: WorkQueueStore(db).mark_failed(item.id, str(e) or type(e).__name__),
                operation="consumer_report",
            )
            return False

        run_in_transaction(
            self.session_factory,
            lambda db: WorkQueueStore(db).mark_completed(item.id, target_id=target_id),
            operation="consumer_report",
        )
        logger.info(
            f"Work item {item.id} completed with target id {target_id}",
            extra={"work_item_id": item.id, "tenant_id": item.tenant_id}
        )
        return True
