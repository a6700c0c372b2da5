"""Work Queue Store - durable work items and their status lifecycle.

Status changes made by consumers go through the conditional primitives
(claim, mark_completed, mark_failed, reset_for_retry). Each one is a single
UPDATE ... WHERE status = <expected>, so when two consumers race for the same
item exactly one of them sees a matched row.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, exists, or_, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from domain.work_items import WorkItemStatus, can_transition
from models.base import utcnow
from models.work_item import WorkItem
from models.work_relation import WorkRelation

logger = logging.getLogger(__name__)

# Fields a full update may change; identity and creation time are immutable
UPDATABLE_FIELDS = (
    "scope",
    "status",
    "request_payload",
    "description",
    "target_id",
    "change_type",
)


class WorkItemNotFoundError(Exception):
    """Raised when a work item id does not reference an existing row."""
    pass


class RelationRestrictError(Exception):
    """Raised when deleting a work item that still takes part in a relation."""
    pass


def _has_relations_clause():
    return exists().where(
        or_(
            WorkRelation.source_item_id == WorkItem.id,
            WorkRelation.target_item_id == WorkItem.id,
        )
    )


class WorkQueueStore:
    """Persistence operations for work items.

    The store never commits; the caller owns the transaction
    (see work_queue.retry.run_in_transaction).
    """

    def __init__(self, db: Session, statement_timeout_ms: Optional[int] = None):
        """Initialize the store.

        Args:
            db: Database session
            statement_timeout_ms: Per-statement timeout applied to the current
                transaction on PostgreSQL (ignored on other dialects)
        """
        self.db = db
        if statement_timeout_ms:
            apply_statement_timeout(db, statement_timeout_ms)

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def add(self, item: WorkItem) -> WorkItem:
        """Persist a new work item. New items always start Pending."""
        if item.status is None:
            item.status = WorkItemStatus.PENDING.value
        elif item.status != WorkItemStatus.PENDING.value:
            logger.warning(
                f"Work item created with status {item.status}, forcing PENDING",
                extra={"tenant_id": item.tenant_id}
            )
            item.status = WorkItemStatus.PENDING.value

        self.db.add(item)
        self.db.flush()
        return item

    def get_by_id(self, item_id: int) -> Optional[WorkItem]:
        return self.db.get(WorkItem, item_id)

    def get_by_external_id(self, external_id: UUID) -> Optional[WorkItem]:
        return self.db.query(WorkItem).filter(
            WorkItem.external_id == external_id
        ).first()

    def get_required(self, item_id: int) -> WorkItem:
        """Get a work item or raise WorkItemNotFoundError."""
        item = self.get_by_id(item_id)
        if item is None:
            raise WorkItemNotFoundError(f"Work item {item_id} not found")
        return item

    def exists(self, item_id: int) -> bool:
        return self.db.query(
            self.db.query(WorkItem).filter(WorkItem.id == item_id).exists()
        ).scalar()

    def list_by_tenant(self, tenant_id: int) -> List[WorkItem]:
        return self.db.query(WorkItem).filter(
            WorkItem.tenant_id == tenant_id
        ).order_by(WorkItem.id).all()

    def list_by_scope(self, scope: int) -> List[WorkItem]:
        return self.db.query(WorkItem).filter(
            WorkItem.scope == int(scope)
        ).order_by(WorkItem.id).all()

    def list_by_status(self, status: WorkItemStatus) -> List[WorkItem]:
        return self.db.query(WorkItem).filter(
            WorkItem.status == int(status)
        ).order_by(WorkItem.id).all()

    def list_by_target_id(self, target_id: int) -> List[WorkItem]:
        return self.db.query(WorkItem).filter(
            WorkItem.target_id == target_id
        ).order_by(WorkItem.id).all()

    def list_by_correlation_id(self, correlation_id: str) -> List[WorkItem]:
        return self.db.query(WorkItem).filter(
            WorkItem.correlation_id == correlation_id
        ).order_by(WorkItem.id).all()

    def list_created_between(self, start: datetime, end: datetime) -> List[WorkItem]:
        """List items created in [start, end), oldest first."""
        return self.db.query(WorkItem).filter(
            WorkItem.created_at >= start,
            WorkItem.created_at < end,
        ).order_by(WorkItem.created_at, WorkItem.id).all()

    def list_pending(
        self,
        tenant_id: Optional[int] = None,
        scope: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[WorkItem]:
        """List Pending items, oldest first, optionally filtered by tenant and scope."""
        query = self.db.query(WorkItem).filter(
            WorkItem.status == WorkItemStatus.PENDING.value
        )
        if tenant_id is not None:
            query = query.filter(WorkItem.tenant_id == tenant_id)
        if scope is not None:
            query = query.filter(WorkItem.scope == int(scope))

        query = query.order_by(WorkItem.created_at, WorkItem.id)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def list_paged(
        self,
        page: int = 1,
        page_size: int = 50,
        tenant_id: Optional[int] = None,
    ) -> Tuple[List[WorkItem], int]:
        """Return one page of work items (newest first) and the total count.

        Args:
            page: 1-based page number
            page_size: Items per page
            tenant_id: Optional tenant filter

        Returns:
            Tuple of (items, total)
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")

        query = self.db.query(WorkItem)
        if tenant_id is not None:
            query = query.filter(WorkItem.tenant_id == tenant_id)

        total = query.count()
        items = query.order_by(WorkItem.created_at.desc(), WorkItem.id.desc()).offset(
            (page - 1) * page_size
        ).limit(page_size).all()
        return items, total

    def count(self) -> int:
        return self.db.query(WorkItem).count()

    def count_by_tenant(self, tenant_id: int) -> int:
        return self.db.query(WorkItem).filter(WorkItem.tenant_id == tenant_id).count()

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update(self, item_id: int, **changes: Any) -> WorkItem:
        """Apply a full update to a work item.

        Only fields in UPDATABLE_FIELDS may change. A status change that does
        not follow the lifecycle is applied but logged as a warning.

        Raises:
            WorkItemNotFoundError: If the item does not exist
            ValueError: If a non-updatable field is passed
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        item = self.get_required(item_id)
        if "status" in changes:
            self._warn_if_nonconforming(item, WorkItemStatus(changes["status"]))
            changes["status"] = int(changes["status"])

        for field, value in changes.items():
            setattr(item, field, value)
        item.updated_at = utcnow()
        self.db.flush()
        return item

    def update_status(
        self,
        item_id: int,
        status: WorkItemStatus,
        target_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> WorkItem:
        """Unconditionally set the status of a work item.

        Non-conforming transitions (e.g. PENDING -> COMPLETED) are allowed but
        logged; consumers should use the conditional primitives instead.

        Raises:
            WorkItemNotFoundError: If the item does not exist
        """
        item = self.get_required(item_id)
        self._warn_if_nonconforming(item, status)

        item.status = int(status)
        if target_id is not None:
            item.target_id = target_id
        if description is not None:
            item.description = description
        item.updated_at = utcnow()
        self.db.flush()
        return item

    def claim(self, item_id: int) -> bool:
        """Atomically move a Pending item to Processing.

        Returns:
            True if this caller claimed the item, False if it was not Pending
        """
        return self._conditional_transition(
            item_id,
            expected=WorkItemStatus.PENDING,
            new_status=WorkItemStatus.PROCESSING,
        )

    def mark_completed(self, item_id: int, target_id: Optional[int] = None) -> bool:
        """Atomically move a Processing item to Completed, recording the target id."""
        values = {}
        if target_id is not None:
            values["target_id"] = target_id
        return self._conditional_transition(
            item_id,
            expected=WorkItemStatus.PROCESSING,
            new_status=WorkItemStatus.COMPLETED,
            **values,
        )

    def mark_failed(
        self,
        item_id: int,
        description: str,
        target_id: Optional[int] = None,
    ) -> bool:
        """Atomically move a Processing item to Error with a readable description."""
        values = {"description": (description or "")[:1024]}
        if target_id is not None:
            values["target_id"] = target_id
        return self._conditional_transition(
            item_id,
            expected=WorkItemStatus.PROCESSING,
            new_status=WorkItemStatus.ERROR,
            **values,
        )

    def reset_for_retry(self, item_id: int) -> bool:
        """Atomically move an Error item back to Pending."""
        return self._conditional_transition(
            item_id,
            expected=WorkItemStatus.ERROR,
            new_status=WorkItemStatus.PENDING,
        )

    def _conditional_transition(
        self,
        item_id: int,
        expected: WorkItemStatus,
        new_status: WorkItemStatus,
        **values: Any,
    ) -> bool:
        stmt = (
            update(WorkItem)
            .where(WorkItem.id == item_id, WorkItem.status == expected.value)
            .values(status=new_status.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        matched = result.rowcount == 1

        if matched:
            logger.info(
                f"Work item {item_id}: {expected.name} -> {new_status.name}",
                extra={"work_item_id": item_id}
            )
        else:
            logger.info(
                f"Work item {item_id} not in {expected.name}, "
                f"{new_status.name} transition skipped",
                extra={"work_item_id": item_id}
            )
        return matched

    def _warn_if_nonconforming(self, item: WorkItem, new_status: WorkItemStatus) -> None:
        current = WorkItemStatus(item.status)
        if current != new_status and not can_transition(current, new_status):
            logger.warning(
                f"Non-conforming status transition for work item {item.id}: "
                f"{current.name} -> {new_status.name}",
                extra={"work_item_id": item.id, "tenant_id": item.tenant_id}
            )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete(self, item_id: int) -> bool:
        """Delete a work item that takes part in no relation.

        Returns:
            True if a row was deleted, False if the item did not exist

        Raises:
            RelationRestrictError: If the item still has relations
        """
        has_relations = self.db.query(WorkRelation).filter(
            or_(
                WorkRelation.source_item_id == item_id,
                WorkRelation.target_item_id == item_id,
            )
        ).first() is not None
        if has_relations:
            raise RelationRestrictError(
                f"Work item {item_id} has relations; remove them before deleting"
            )

        try:
            with self.db.begin_nested():
                result = self.db.execute(
                    delete(WorkItem)
                    .where(WorkItem.id == item_id)
                    .execution_options(synchronize_session="fetch")
                )
        except IntegrityError as e:
            # Relation inserted concurrently; the foreign key restricts the delete
            raise RelationRestrictError(
                f"Work item {item_id} has relations; remove them before deleting"
            ) from e

        return result.rowcount == 1

    def find_ids_older_than(self, days: int) -> List[int]:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        return list(self.db.scalars(
            select(WorkItem.id).where(WorkItem.created_at < cutoff).order_by(WorkItem.id)
        ))

    def delete_older_than(self, days: int) -> Dict[str, int]:
        """Delete work items created more than `days` ago.

        Items that still take part in a relation are left in place.

        Returns:
            Dict with "deleted" and "skipped_with_relations" counts
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        skipped = self.db.query(WorkItem).filter(
            WorkItem.created_at < cutoff,
            _has_relations_clause(),
        ).count()

        deletable_ids = list(self.db.scalars(
            select(WorkItem.id).where(
                WorkItem.created_at < cutoff,
                ~_has_relations_clause(),
            )
        ))

        deleted = 0
        if deletable_ids:
            result = self.db.execute(
                delete(WorkItem)
                .where(WorkItem.id.in_(deletable_ids))
                .execution_options(synchronize_session="fetch")
            )
            deleted = result.rowcount

        logger.info(
            f"Deleted {deleted} work items older than {days} days "
            f"({skipped} kept because of relations)"
        )
        return {"deleted": deleted, "skipped_with_relations": skipped}


def apply_statement_timeout(db: Session, timeout_ms: int) -> None:
    """Bound statement run time for the current transaction (PostgreSQL only)."""
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
