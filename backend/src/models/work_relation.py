"""WorkRelation model - directed lineage edge between two work items.

Example lineage: an order work item is the source of the invoice work item it
produced; an invoice correction targets the invoice it corrects.
"""

from sqlalchemy import (
    Column, DateTime, ForeignKey, Index, Integer, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class WorkRelation(Base):
    """
    Directed edge source_item_id → target_item_id.

    At most one edge exists per ordered pair (uq_work_relation_source_target).
    Both endpoints RESTRICT deletion of the referenced work item, so lineage
    is never dropped implicitly. Edges are immutable once created.
    """
    __tablename__ = "work_relation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_item_id = Column(
        Integer,
        ForeignKey("work_item.id", ondelete="RESTRICT", name="fk_work_relation_source"),
        nullable=False
    )
    target_item_id = Column(
        Integer,
        ForeignKey("work_item.id", ondelete="RESTRICT", name="fk_work_relation_target"),
        nullable=False
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    source_item = relationship("WorkItem", foreign_keys=[source_item_id])
    target_item = relationship("WorkItem", foreign_keys=[target_item_id])

    __table_args__ = (
        UniqueConstraint(
            "source_item_id", "target_item_id",
            name="uq_work_relation_source_target"
        ),
        Index("ix_work_relation_source_item_id", "source_item_id"),
        Index("ix_work_relation_target_item_id", "target_item_id"),
    )

    def __repr__(self):
        return (
            f"<WorkRelation(id={self.id}, source={self.source_item_id}, "
            f"target={self.target_item_id})>"
        )
