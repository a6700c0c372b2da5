"""Relation Graph Store - directed lineage edges between work items.

Edges are immutable. Uniqueness of the (source, target) pair is enforced by
the uq_work_relation_source_target constraint, so two concurrent creators of
the same edge cannot both succeed. Deleting an edge never deletes the work
items it references.
"""

import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy import delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from domain.work_items import WorkItemStatus
from models.work_item import WorkItem
from models.work_relation import WorkRelation
from .service import WorkItemNotFoundError

logger = logging.getLogger(__name__)


class RelationConflictError(Exception):
    """Raised when creating an edge that already exists."""
    pass


class RelationGraphStore:
    """Persistence and graph queries for work relations.

    The store never commits; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(self, source_item_id: int, target_item_id: int) -> WorkRelation:
        """Create the edge source -> target.

        Raises:
            ValueError: If source and target are the same item
            WorkItemNotFoundError: If either endpoint does not exist
            RelationConflictError: If the edge already exists
        """
        if source_item_id == target_item_id:
            raise ValueError(f"Work item {source_item_id} cannot relate to itself")

        for item_id in (source_item_id, target_item_id):
            if self.db.get(WorkItem, item_id) is None:
                raise WorkItemNotFoundError(f"Work item {item_id} not found")

        if self.exists(source_item_id, target_item_id):
            raise RelationConflictError(
                f"Relation {source_item_id} -> {target_item_id} already exists"
            )

        relation = WorkRelation(
            source_item_id=source_item_id,
            target_item_id=target_item_id,
        )
        try:
            # Savepoint: a constraint violation must not abort the caller's transaction
            with self.db.begin_nested():
                self.db.add(relation)
                self.db.flush()
        except IntegrityError as e:
            raise RelationConflictError(
                f"Relation {source_item_id} -> {target_item_id} already exists"
            ) from e

        logger.info(
            f"Created relation {source_item_id} -> {target_item_id}",
            extra={"work_item_id": source_item_id}
        )
        return relation

    def create_or_get(self, source_item_id: int, target_item_id: int) -> WorkRelation:
        """Create the edge, or return the existing one for the same pair."""
        try:
            return self.create(source_item_id, target_item_id)
        except RelationConflictError:
            relation = self.get_relation(source_item_id, target_item_id)
            if relation is None:
                raise
            return relation

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_by_id(self, relation_id: int) -> Optional[WorkRelation]:
        return self.db.get(WorkRelation, relation_id)

    def get_relation(self, source_item_id: int, target_item_id: int) -> Optional[WorkRelation]:
        return self.db.query(WorkRelation).filter(
            WorkRelation.source_item_id == source_item_id,
            WorkRelation.target_item_id == target_item_id,
        ).first()

    def get_outgoing(self, source_item_id: int) -> List[WorkRelation]:
        return self.db.query(WorkRelation).filter(
            WorkRelation.source_item_id == source_item_id
        ).order_by(WorkRelation.id).all()

    def get_incoming(self, target_item_id: int) -> List[WorkRelation]:
        return self.db.query(WorkRelation).filter(
            WorkRelation.target_item_id == target_item_id
        ).order_by(WorkRelation.id).all()

    def get_all_for_item(self, item_id: int) -> List[WorkRelation]:
        return self.db.query(WorkRelation).filter(
            or_(
                WorkRelation.source_item_id == item_id,
                WorkRelation.target_item_id == item_id,
            )
        ).order_by(WorkRelation.id).all()

    def list_all(self) -> List[WorkRelation]:
        return self.db.query(WorkRelation).order_by(WorkRelation.id).all()

    def exists(self, source_item_id: int, target_item_id: int) -> bool:
        return self.get_relation(source_item_id, target_item_id) is not None

    def count_outgoing(self, source_item_id: int) -> int:
        return self.db.query(WorkRelation).filter(
            WorkRelation.source_item_id == source_item_id
        ).count()

    def count_incoming(self, target_item_id: int) -> int:
        return self.db.query(WorkRelation).filter(
            WorkRelation.target_item_id == target_item_id
        ).count()

    def get_target_items(self, source_item_id: int) -> List[WorkItem]:
        """Work items the given item points to."""
        return self.resolve_counterparts(self.get_outgoing(source_item_id), source_item_id)

    def get_source_items(self, target_item_id: int) -> List[WorkItem]:
        """Work items pointing to the given item."""
        return self.resolve_counterparts(self.get_incoming(target_item_id), target_item_id)

    def resolve_counterparts(
        self,
        relations: Iterable[WorkRelation],
        item_id: int,
    ) -> List[WorkItem]:
        """Resolve edges touching item_id to the work items on their other end.

        Order follows the given relations; duplicates are dropped.
        """
        counterpart_ids: List[int] = []
        for relation in relations:
            other = (
                relation.target_item_id
                if relation.source_item_id == item_id
                else relation.source_item_id
            )
            if other not in counterpart_ids:
                counterpart_ids.append(other)

        if not counterpart_ids:
            return []

        items = self.db.query(WorkItem).filter(WorkItem.id.in_(counterpart_ids)).all()
        by_id = {item.id: item for item in items}
        return [by_id[i] for i in counterpart_ids if i in by_id]

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete(self, relation_id: int) -> bool:
        """Delete one edge by id. Returns False if it did not exist."""
        return self._delete_where(WorkRelation.id == relation_id) == 1

    def delete_relation(self, source_item_id: int, target_item_id: int) -> bool:
        """Delete the edge for an exact pair. Returns False if it did not exist."""
        return self._delete_where(
            WorkRelation.source_item_id == source_item_id,
            WorkRelation.target_item_id == target_item_id,
        ) == 1

    def delete_outgoing(self, source_item_id: int) -> int:
        return self._delete_where(WorkRelation.source_item_id == source_item_id)

    def delete_incoming(self, target_item_id: int) -> int:
        return self._delete_where(WorkRelation.target_item_id == target_item_id)

    def delete_all_for_item(self, item_id: int) -> int:
        return self._delete_where(
            or_(
                WorkRelation.source_item_id == item_id,
                WorkRelation.target_item_id == item_id,
            )
        )

    def _delete_where(self, *criteria) -> int:
        result = self.db.execute(
            delete(WorkRelation)
            .where(*criteria)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            logger.info(f"Deleted {result.rowcount} work relation(s)")
        return result.rowcount

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def get_descendant_ids(self, item_id: int) -> List[int]:
        """Breadth-first walk of outgoing edges; each item is visited once.

        The starting item is not included, even when a cycle leads back to it.
        """
        visited: Set[int] = {item_id}
        ordered: List[int] = []
        frontier = deque([item_id])

        while frontier:
            level = []
            while frontier:
                level.append(frontier.popleft())

            rows = self.db.query(WorkRelation.target_item_id).filter(
                WorkRelation.source_item_id.in_(level)
            ).order_by(WorkRelation.id).all()

            for (target_id,) in rows:
                if target_id in visited:
                    continue
                visited.add(target_id)
                ordered.append(target_id)
                frontier.append(target_id)

        return ordered

    def get_descendants(self, item_id: int) -> List[WorkItem]:
        """All work items reachable from item_id, in breadth-first order."""
        ids = self.get_descendant_ids(item_id)
        if not ids:
            return []
        items = self.db.query(WorkItem).filter(WorkItem.id.in_(ids)).all()
        by_id = {item.id: item for item in items}
        return [by_id[i] for i in ids if i in by_id]

    def all_descendants_completed(self, item_id: int) -> bool:
        """True when every descendant is Completed (vacuously true with none)."""
        ids = self.get_descendant_ids(item_id)
        if not ids:
            return True
        unfinished = self.db.query(WorkItem).filter(
            WorkItem.id.in_(ids),
            WorkItem.status != WorkItemStatus.COMPLETED.value,
        ).count()
        return unfinished == 0

    def find_failed_descendants(
        self,
        item_id: int,
        older_than: timedelta,
    ) -> List[WorkItem]:
        """Error-status descendants whose last update is older than `older_than`."""
        ids = self.get_descendant_ids(item_id)
        if not ids:
            return []

        cutoff = datetime.now(timezone.utc) - older_than
        return self.db.query(WorkItem).filter(
            WorkItem.id.in_(ids),
            WorkItem.status == WorkItemStatus.ERROR.value,
            WorkItem.updated_at < cutoff,
        ).order_by(WorkItem.id).all()
