"""Retry sweep for failed work items in a workflow.

Given the root work item of a workflow, every Error-status descendant whose
last update is older than the threshold is moved back to Pending so the
downstream consumer picks it up again.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List

from celery import shared_task
from sqlalchemy.orm import Session

from config import settings
from database import SessionLocal
from work_queue.relations import RelationGraphStore
from work_queue.retry import run_in_transaction
from work_queue.service import WorkQueueStore

logger = logging.getLogger(__name__)


def reset_failed_descendants(
    db: Session,
    root_item_id: int,
    older_than_minutes: int,
) -> List[int]:
    """Reset Error descendants of root_item_id older than the threshold.

    Each reset is a conditional Error -> Pending update; an item another
    process already moved on is left alone.

    Args:
        db: Database session (caller owns the transaction)
        root_item_id: Work item whose descendants are swept
        older_than_minutes: Minimum age of the last update

    Returns:
        Ids of the work items that were reset
    """
    relations = RelationGraphStore(db)
    store = WorkQueueStore(db)

    failed = relations.find_failed_descendants(
        root_item_id,
        older_than=timedelta(minutes=older_than_minutes),
    )
    failed_ids = [item.id for item in failed]

    reset_ids = [item_id for item_id in failed_ids if store.reset_for_retry(item_id)]

    logger.info(
        f"Reset {len(reset_ids)} of {len(failed_ids)} failed descendants "
        f"of work item {root_item_id}",
        extra={"work_item_id": root_item_id}
    )
    return reset_ids


@shared_task(name="work_queue.retry_failed_descendants", bind=True)
def retry_failed_descendants_task(
    self,
    root_item_id: int,
    older_than_minutes: int = 15,
) -> Dict[str, Any]:
    """Celery entry point for reset_failed_descendants.

    Returns:
        Dict with status and the ids of reset work items
    """
    try:
        reset_ids = run_in_transaction(
            SessionLocal,
            lambda db: reset_failed_descendants(db, root_item_id, older_than_minutes),
            max_retries=settings.STORE_MAX_RETRIES,
            base_delay=settings.STORE_RETRY_BASE_DELAY_SECONDS,
            max_delay=settings.STORE_RETRY_MAX_DELAY_SECONDS,
            operation="retry_sweep",
        )
    except Exception as e:
        logger.error(
            f"Retry sweep failed for work item {root_item_id}",
            exc_info=True,
            extra={"work_item_id": root_item_id, "error": str(e)}
        )
        return {
            'status': 'failed',
            'root_item_id': root_item_id,
            'error': str(e),
        }

    return {
        'status': 'completed',
        'root_item_id': root_item_id,
        'reset_item_ids': reset_ids,
    }
