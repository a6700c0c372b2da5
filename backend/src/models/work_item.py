"""WorkItem model - durable unit of downstream work.

A work item is created by an ingestion strategy and then driven through its
status lifecycle by the downstream consumer. Rows are only removed by the
retention sweep; rows taking part in a work relation cannot be deleted.
"""

import uuid

from sqlalchemy import (
    CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid,
)
from sqlalchemy.orm import relationship, validates

from domain.work_items import WorkItemStatus
from .base import Base, utcnow


class WorkItem(Base):
    """
    Work item - one pending, in-progress, completed or failed downstream operation.

    Attributes:
        id: Store-assigned numeric identifier
        external_id: Stable UUID exposed to other systems
        tenant_id: Owning tenant
        scope: Operation scope code (see WorkScope)
        status: Status code (see WorkItemStatus)
        request_payload: Serialized request for the downstream processor
        description: Free text; downstream processors write error details here
        target_id: Downstream object id, 0 until assigned
        correlation_id: Correlation identifier of the originating envelope
        change_type: Change kind carried by the source event
        raw_body: Decrypted notification body kept for audit
        created_at: Creation timestamp
        updated_at: Last modification timestamp
    """
    __tablename__ = "work_item"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(Uuid, nullable=False, unique=True, default=uuid.uuid4)
    tenant_id = Column(
        Integer,
        ForeignKey("tenant.id", ondelete="RESTRICT"),
        nullable=False
    )
    scope = Column(Integer, nullable=False)
    status = Column(Integer, nullable=False, default=WorkItemStatus.PENDING.value)
    request_payload = Column(Text, nullable=False, default="")
    description = Column(String(1024), nullable=False, default="")
    target_id = Column(Integer, nullable=False, default=0)
    correlation_id = Column(String(64), nullable=True)
    change_type = Column(Text, nullable=True)
    raw_body = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    # Relationships
    tenant = relationship("Tenant")
    outgoing_relations = relationship(
        "WorkRelation",
        foreign_keys="WorkRelation.source_item_id",
        viewonly=True,
    )
    incoming_relations = relationship(
        "WorkRelation",
        foreign_keys="WorkRelation.target_item_id",
        viewonly=True,
    )

    __table_args__ = (
        Index("ix_work_item_tenant_id", "tenant_id"),
        Index("ix_work_item_scope", "scope"),
        Index("ix_work_item_status", "status"),
        Index("ix_work_item_created_at", "created_at"),
        Index("ix_work_item_target_id", "target_id"),
        Index("ix_work_item_correlation_id", "correlation_id"),
        CheckConstraint("status IN (0, 5, 1, -1)", name="ck_work_item_status"),
    )

    @validates('description')
    def validate_description(self, key, value):
        """Truncate descriptions to the 1024 character column limit."""
        if value is None:
            return ""
        return value[:1024]

    @property
    def status_enum(self) -> WorkItemStatus:
        return WorkItemStatus(self.status)

    def __repr__(self):
        return (
            f"<WorkItem(id={self.id}, tenant_id={self.tenant_id}, "
            f"scope={self.scope}, status={self.status})>"
        )
