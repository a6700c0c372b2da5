"""Celery tasks for work item retention.

Tasks:
- retention.purge_work_items: on-demand retention sweep
"""

import logging
from typing import Any, Dict, Optional

from celery import shared_task

from config import settings
from database import SessionLocal
from work_queue.retry import run_in_transaction
from .schemas import RetentionSettings
from .service import WorkItemRetentionService

logger = logging.getLogger(__name__)


@shared_task(name="retention.purge_work_items", bind=True)
def purge_work_items_task(
    self,
    older_than_days: Optional[int] = None,
    purge_relations: bool = False,
) -> Dict[str, Any]:
    """Delete work items older than the retention period.

    Args:
        older_than_days: Retention period; defaults to WORK_ITEM_RETENTION_DAYS
        purge_relations: Remove relations of aged items so they can be deleted

    Returns:
        Dict with sweep statistics, or status "failed" with the error

    Example invocation:
        purge_work_items_task.delay(older_than_days=180, purge_relations=True)
    """
    retention_settings = RetentionSettings(
        work_item_retention_days=older_than_days or settings.WORK_ITEM_RETENTION_DAYS,
        purge_relations=purge_relations,
    )
    logger.info(
        "Retention sweep task started",
        extra={"retention_days": retention_settings.work_item_retention_days}
    )

    try:
        statistics = run_in_transaction(
            SessionLocal,
            lambda db: WorkItemRetentionService(db, retention_settings).purge(),
            max_retries=settings.STORE_MAX_RETRIES,
            base_delay=settings.STORE_RETRY_BASE_DELAY_SECONDS,
            max_delay=settings.STORE_RETRY_MAX_DELAY_SECONDS,
            operation="retention",
        )

        result = {
            'status': 'completed',
            'job_started_at': statistics.job_started_at.isoformat(),
            'job_completed_at': statistics.job_completed_at.isoformat(),
            'duration_seconds': statistics.duration_seconds,
            'retention_days': statistics.retention_days,
            'work_items_deleted': statistics.work_items_deleted,
            'relations_deleted': statistics.relations_deleted,
            'work_items_skipped': statistics.work_items_skipped,
            'total_deleted': statistics.total_records_deleted,
            'is_anomaly': statistics.is_anomaly,
        }

        logger.info(
            "Retention sweep task completed successfully",
            extra=result
        )
        return result

    except Exception as e:
        logger.error(
            "Retention sweep task failed",
            exc_info=True,
            extra={"error": str(e)}
        )

        # Return error status but don't raise (allow task to complete)
        return {
            'status': 'failed',
            'error': str(e),
            'total_deleted': 0,
        }
