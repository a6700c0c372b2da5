"""Integration tests for WorkQueueStore

Tests cover:
- Creation always starting Pending
- Conditional lifecycle primitives (claim, mark_*, reset_for_retry)
- Unconditional status updates and non-conforming transition warnings
- Restricted deletion of related work items
- Listing, paging and age-based deletion
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.orm import Session

from domain.work_items import WorkItemStatus, WorkScope
from models.work_item import WorkItem
from work_queue.relations import RelationGraphStore
from work_queue.service import (
    RelationRestrictError,
    WorkItemNotFoundError,
    WorkQueueStore,
)


pytestmark = pytest.mark.integration


def age_item(db: Session, item_id: int, **delta) -> None:
    """Move created_at / updated_at of a work item into the past."""
    past = datetime.now(timezone.utc) - timedelta(**delta)
    db.execute(
        update(WorkItem)
        .where(WorkItem.id == item_id)
        .values(created_at=past, updated_at=past)
    )
    db.commit()


class TestCreation:
    """Test work item creation"""

    def test_add_assigns_id_and_defaults(self, db_session: Session, default_tenant):
        """Test add() flushes, assigns id and external id"""
        store = WorkQueueStore(db_session)

        item = store.add(WorkItem(
            tenant_id=default_tenant.id,
            scope=WorkScope.ORDER.value,
            request_payload='{"number": "1"}',
        ))
        db_session.commit()

        assert item.id is not None
        assert item.external_id is not None
        assert item.status == WorkItemStatus.PENDING.value
        assert item.target_id == 0
        assert item.description == ""
        assert store.get_by_external_id(item.external_id).id == item.id

    def test_add_forces_pending(self, db_session: Session, default_tenant, caplog):
        """Test a new item with another status is stored as Pending"""
        store = WorkQueueStore(db_session)

        with caplog.at_level(logging.WARNING):
            item = store.add(WorkItem(
                tenant_id=default_tenant.id,
                scope=WorkScope.PRODUCT.value,
                status=WorkItemStatus.COMPLETED.value,
            ))

        assert item.status == WorkItemStatus.PENDING.value
        assert "forcing PENDING" in caplog.text

    def test_get_required_missing(self, db_session: Session, session_factory):
        """Test get_required raises for unknown ids"""
        with pytest.raises(WorkItemNotFoundError):
            WorkQueueStore(db_session).get_required(999)

        assert WorkQueueStore(db_session).exists(999) is False


class TestConditionalTransitions:
    """Test the race-safe lifecycle primitives"""

    def test_claim_only_once(self, db_session: Session, make_work_item):
        """Test two claims on the same item: exactly one succeeds"""
        item = make_work_item()
        store = WorkQueueStore(db_session)

        assert store.claim(item.id) is True
        assert store.claim(item.id) is False
        db_session.commit()

        assert store.get_by_id(item.id).status == WorkItemStatus.PROCESSING.value

    def test_claim_requires_pending(self, db_session: Session, make_work_item):
        """Test claiming an Error or Completed item fails"""
        store = WorkQueueStore(db_session)

        assert store.claim(make_work_item(status=WorkItemStatus.ERROR).id) is False
        assert store.claim(make_work_item(status=WorkItemStatus.COMPLETED).id) is False

    def test_claim_unknown_item(self, db_session: Session, session_factory):
        """Test claiming a missing item returns False"""
        assert WorkQueueStore(db_session).claim(12345) is False

    def test_mark_completed_records_target(self, db_session: Session, make_work_item):
        """Test Processing -> Completed stores the downstream target id"""
        item = make_work_item(status=WorkItemStatus.PROCESSING)
        store = WorkQueueStore(db_session)

        assert store.mark_completed(item.id, target_id=4711) is True
        db_session.commit()

        stored = store.get_by_id(item.id)
        assert stored.status == WorkItemStatus.COMPLETED.value
        assert stored.target_id == 4711

    def test_mark_completed_requires_processing(self, db_session: Session, make_work_item):
        """Test a Pending item cannot be completed without being claimed"""
        item = make_work_item()

        assert WorkQueueStore(db_session).mark_completed(item.id, target_id=1) is False

    def test_mark_failed_records_description(self, db_session: Session, make_work_item):
        """Test Processing -> Error stores a truncated description"""
        item = make_work_item(status=WorkItemStatus.PROCESSING)
        store = WorkQueueStore(db_session)

        assert store.mark_failed(item.id, "E" * 2000) is True
        db_session.commit()

        stored = store.get_by_id(item.id)
        assert stored.status == WorkItemStatus.ERROR.value
        assert len(stored.description) == 1024

    def test_reset_for_retry(self, db_session: Session, make_work_item):
        """Test Error -> Pending succeeds once"""
        item = make_work_item(status=WorkItemStatus.ERROR)
        store = WorkQueueStore(db_session)

        assert store.reset_for_retry(item.id) is True
        assert store.reset_for_retry(item.id) is False

    def test_reset_requires_error(self, db_session: Session, make_work_item):
        """Test Completed items are never reset"""
        item = make_work_item(status=WorkItemStatus.COMPLETED)

        assert WorkQueueStore(db_session).reset_for_retry(item.id) is False

    def test_transition_updates_timestamp(self, db_session: Session, make_work_item):
        """Test conditional transitions refresh updated_at"""
        item = make_work_item()
        age_item(db_session, item.id, hours=2)
        store = WorkQueueStore(db_session)

        store.claim(item.id)
        db_session.commit()

        refreshed = store.get_by_id(item.id)
        db_session.refresh(refreshed)
        updated_at = refreshed.updated_at
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        assert updated_at > datetime.now(timezone.utc) - timedelta(minutes=5)


class TestUnconditionalUpdates:
    """Test update() and update_status()"""

    def test_update_status_allows_nonconforming(self, db_session: Session, make_work_item, caplog):
        """Test Pending -> Completed is applied but logged as a warning"""
        item = make_work_item()

        with caplog.at_level(logging.WARNING):
            WorkQueueStore(db_session).update_status(item.id, WorkItemStatus.COMPLETED, target_id=9)

        assert item.status == WorkItemStatus.COMPLETED.value
        assert item.target_id == 9
        assert "Non-conforming status transition" in caplog.text

    def test_update_status_conforming_is_quiet(self, db_session: Session, make_work_item, caplog):
        """Test a lifecycle transition logs no warning"""
        item = make_work_item()

        with caplog.at_level(logging.WARNING):
            WorkQueueStore(db_session).update_status(item.id, WorkItemStatus.PROCESSING)

        assert "Non-conforming" not in caplog.text

    def test_update_fields(self, db_session: Session, make_work_item):
        """Test full update of mutable fields"""
        item = make_work_item()

        WorkQueueStore(db_session).update(item.id, description="checked", target_id=3)

        assert item.description == "checked"
        assert item.target_id == 3

    def test_update_rejects_immutable_fields(self, db_session: Session, make_work_item):
        """Test identity fields cannot be changed"""
        item = make_work_item()

        with pytest.raises(ValueError):
            WorkQueueStore(db_session).update(item.id, tenant_id=99)

    def test_update_missing_item(self, db_session: Session, session_factory):
        """Test updating an unknown item raises"""
        with pytest.raises(WorkItemNotFoundError):
            WorkQueueStore(db_session).update_status(404, WorkItemStatus.ERROR)


class TestDeletion:
    """Test restricted deletion"""

    def test_delete_unrelated_item(self, db_session: Session, make_work_item):
        """Test an item without relations can be deleted"""
        item = make_work_item()
        store = WorkQueueStore(db_session)

        assert store.delete(item.id) is True
        db_session.commit()

        assert store.get_by_id(item.id) is None
        assert store.delete(item.id) is False

    @pytest.mark.parametrize("side", ["source", "target"])
    def test_delete_related_item_restricted(self, db_session: Session, make_work_item, side):
        """Test items on either end of a relation cannot be deleted"""
        source, target = make_work_item(), make_work_item()
        RelationGraphStore(db_session).create(source.id, target.id)
        db_session.commit()

        victim = source if side == "source" else target
        with pytest.raises(RelationRestrictError):
            WorkQueueStore(db_session).delete(victim.id)

        assert WorkQueueStore(db_session).exists(victim.id) is True

    def test_delete_older_than_skips_related(self, db_session: Session, make_work_item):
        """Test age-based deletion keeps related and recent items"""
        old_free = make_work_item()
        old_linked = make_work_item()
        linked_target = make_work_item()
        recent = make_work_item()
        RelationGraphStore(db_session).create(old_linked.id, linked_target.id)
        db_session.commit()
        for item in (old_free, old_linked):
            age_item(db_session, item.id, days=100)

        store = WorkQueueStore(db_session)
        counts = store.delete_older_than(90)
        db_session.commit()

        assert counts == {"deleted": 1, "skipped_with_relations": 1}
        assert store.exists(old_free.id) is False
        assert store.exists(old_linked.id) is True
        assert store.exists(recent.id) is True


class TestListing:
    """Test list and page queries"""

    def test_list_pending_oldest_first_with_filters(
        self, db_session: Session, make_work_item, secondary_tenant
    ):
        """Test list_pending filters by tenant / scope and orders by age"""
        newer = make_work_item(scope=WorkScope.ORDER)
        older = make_work_item(scope=WorkScope.ORDER)
        age_item(db_session, older.id, minutes=30)
        make_work_item(scope=WorkScope.PRODUCT)
        make_work_item(status=WorkItemStatus.ERROR)
        make_work_item(tenant_id=secondary_tenant.id)

        store = WorkQueueStore(db_session)
        pending = store.list_pending(tenant_id=newer.tenant_id, scope=WorkScope.ORDER)

        assert [i.id for i in pending] == [older.id, newer.id]
        assert len(store.list_pending(limit=2)) == 2

    def test_list_by_tenant_and_status(self, db_session: Session, make_work_item, secondary_tenant):
        """Test simple list filters"""
        a = make_work_item()
        b = make_work_item(tenant_id=secondary_tenant.id, status=WorkItemStatus.ERROR)
        store = WorkQueueStore(db_session)

        assert [i.id for i in store.list_by_tenant(secondary_tenant.id)] == [b.id]
        assert [i.id for i in store.list_by_status(WorkItemStatus.ERROR)] == [b.id]
        assert [i.id for i in store.list_by_scope(WorkScope.ORDER)] == [a.id, b.id]
        assert store.count() == 2
        assert store.count_by_tenant(secondary_tenant.id) == 1

    def test_list_by_correlation_id(self, db_session: Session, make_work_item):
        """Test items are found by their envelope correlation id"""
        item = make_work_item(correlation_id="guid-42")
        make_work_item(correlation_id="other")

        found = WorkQueueStore(db_session).list_by_correlation_id("guid-42")

        assert [i.id for i in found] == [item.id]

    def test_list_paged(self, db_session: Session, make_work_item):
        """Test paging returns newest first with total count"""
        items = [make_work_item() for _ in range(5)]
        for offset, item in enumerate(items):
            age_item(db_session, item.id, minutes=10 * (len(items) - offset))

        store = WorkQueueStore(db_session)
        page_one, total = store.list_paged(page=1, page_size=2)
        page_three, _ = store.list_paged(page=3, page_size=2)

        assert total == 5
        assert [i.id for i in page_one] == [items[4].id, items[3].id]
        assert [i.id for i in page_three] == [items[0].id]

    def test_list_paged_validates_arguments(self, db_session: Session, session_factory):
        """Test page and page size must be positive"""
        with pytest.raises(ValueError):
            WorkQueueStore(db_session).list_paged(page=0)
        with pytest.raises(ValueError):
            WorkQueueStore(db_session).list_paged(page_size=0)

    def test_list_by_target_id(self, db_session: Session, make_work_item):
        """Test items are found by the downstream target id"""
        first = make_work_item(status=WorkItemStatus.COMPLETED, target_id=77)
        make_work_item(status=WorkItemStatus.COMPLETED, target_id=78)
        second = make_work_item(status=WorkItemStatus.COMPLETED, target_id=77)

        found = WorkQueueStore(db_session).list_by_target_id(77)

        assert [i.id for i in found] == [first.id, second.id]

    def test_list_created_between_is_half_open(self, db_session: Session, make_work_item):
        """Test the range includes start and excludes end"""
        start = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        end = start + timedelta(hours=2)
        placed = {}
        for name, when in (
            ("before", start - timedelta(hours=1)),
            ("at_start", start),
            ("inside", start + timedelta(hours=1)),
            ("at_end", end),
        ):
            item = make_work_item()
            db_session.execute(
                update(WorkItem).where(WorkItem.id == item.id).values(created_at=when)
            )
            placed[name] = item.id
        db_session.commit()

        found = WorkQueueStore(db_session).list_created_between(start, end)

        assert [i.id for i in found] == [placed["at_start"], placed["inside"]]
