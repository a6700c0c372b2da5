"""AuditLog SQLAlchemy model"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from .base import Base, PortableJSONB, utcnow


class AuditLog(Base):
    """AuditLog model for append-only ingestion event logging.

    Records work item creation and ingestion failures for forensics.
    Entries are append-only and should never be updated or deleted.
    tenant_id and entity_id are plain integers so audit rows never block
    retention of the rows they describe.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_tenant_id_created_at", "tenant_id", "created_at"),
        Index("ix_audit_log_correlation_id", "correlation_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=True)
    action = Column(Text, nullable=False)
    entity_type = Column(Text, nullable=True)
    entity_id = Column(Integer, nullable=True)
    correlation_id = Column(String(64), nullable=True)
    metadata_json = Column(PortableJSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        """Convert audit log entry to dictionary representation"""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": self.correlation_id,
            "metadata": self.metadata_json,
            "created_at": self.created_at.isoformat()
        }
