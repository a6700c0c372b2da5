"""Retention service for aged work items.

Work items are only ever removed by this sweep. Relations restrict deletion,
so an aged item that still has relations is kept unless the sweep is told to
remove those relations first. The sweep is idempotent: running it twice in
succession finds nothing more to delete.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from audit.service import log_audit_event
from work_queue.relations import RelationGraphStore
from work_queue.service import WorkQueueStore
from .schemas import RetentionSettings, RetentionStatistics

logger = logging.getLogger(__name__)

WORK_ITEMS_PURGED = "WORK_ITEMS_PURGED"


class WorkItemRetentionService:
    """Deletes work items past their retention period.

    The service never commits; the caller owns the transaction.
    """

    def __init__(self, db: Session, settings: Optional[RetentionSettings] = None):
        """Initialize retention service.

        Args:
            db: Database session
            settings: Retention defaults; individual purge() calls may override
        """
        self.db = db
        self.settings = settings or RetentionSettings()
        self.store = WorkQueueStore(db)
        self.relations = RelationGraphStore(db)

    def purge(
        self,
        older_than_days: Optional[int] = None,
        purge_relations: Optional[bool] = None,
    ) -> RetentionStatistics:
        """Delete work items created more than older_than_days ago.

        Args:
            older_than_days: Retention period; defaults to the settings value
            purge_relations: Remove relations of aged items first; defaults to
                the settings value

        Returns:
            RetentionStatistics for this sweep
        """
        started = datetime.now(timezone.utc)
        days = older_than_days if older_than_days is not None else self.settings.work_item_retention_days
        if days < 1:
            raise ValueError("Retention period must be at least 1 day")
        remove_relations = (
            purge_relations if purge_relations is not None else self.settings.purge_relations
        )

        relations_deleted = 0
        if remove_relations:
            for item_id in self.store.find_ids_older_than(days):
                relations_deleted += self.relations.delete_all_for_item(item_id)

        counts = self.store.delete_older_than(days)

        completed = datetime.now(timezone.utc)
        statistics = RetentionStatistics(
            job_started_at=started,
            job_completed_at=completed,
            duration_seconds=(completed - started).total_seconds(),
            retention_days=days,
            work_items_deleted=counts["deleted"],
            relations_deleted=relations_deleted,
            work_items_skipped=counts["skipped_with_relations"],
        )

        if statistics.total_records_deleted:
            log_audit_event(
                db=self.db,
                action=WORK_ITEMS_PURGED,
                entity_type="work_item",
                metadata={
                    "retention_days": days,
                    "work_items_deleted": statistics.work_items_deleted,
                    "relations_deleted": statistics.relations_deleted,
                    "work_items_skipped": statistics.work_items_skipped,
                },
            )

        log = logger.warning if statistics.is_anomaly else logger.info
        log(
            f"Retention sweep deleted {statistics.work_items_deleted} work items "
            f"and {statistics.relations_deleted} relations",
            extra={
                "retention_days": days,
                "work_items_skipped": statistics.work_items_skipped,
                "is_anomaly": statistics.is_anomaly,
            }
        )

        return statistics
