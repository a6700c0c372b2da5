"""Audit logging for the ingestion pipeline.

Audit output is an injected capability: strategies receive an AuditSink
through their processing context instead of writing to a global logger or
file. Two sinks are provided:

- DatabaseAuditSink: appends AuditLog rows in the caller's session, so the
  audit entry commits or rolls back together with the work items it describes
- LoggingAuditSink: emits a structured log record on the "webhook.audit" logger

Audit Events:
- WORK_ITEM_CREATED
- INGESTION_FAILED
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models.audit_log import AuditLog

WORK_ITEM_CREATED = "WORK_ITEM_CREATED"
INGESTION_FAILED = "INGESTION_FAILED"


def log_audit_event(
    db: Session,
    action: str,
    tenant_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    correlation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Create an audit log entry.

    All parameters are stored as-is. This function does not validate action
    names or entity types.

    Args:
        db: Database session
        action: Event action (e.g., "WORK_ITEM_CREATED")
        tenant_id: Tenant the event belongs to
        entity_type: Type of entity affected (e.g., "work_item")
        entity_id: ID of affected entity
        correlation_id: Correlation identifier of the originating envelope
        metadata: Additional context as JSON (e.g., {"line_items": 3})

    Returns:
        AuditLog: The created audit log entry
    """
    audit_entry = AuditLog(
        tenant_id=tenant_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        correlation_id=correlation_id,
        metadata_json=metadata,
    )

    db.add(audit_entry)
    db.flush()  # Get ID without committing transaction

    return audit_entry


class AuditSink(ABC):
    """Destination for audit events."""

    @abstractmethod
    def record(
        self,
        action: str,
        tenant_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record one audit event."""
        pass


class DatabaseAuditSink(AuditSink):
    """Writes audit events as AuditLog rows in the given session."""

    def __init__(self, db: Session):
        self.db = db

    def record(self, action, tenant_id=None, entity_type=None, entity_id=None,
               correlation_id=None, metadata=None) -> None:
        log_audit_event(
            db=self.db,
            action=action,
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            metadata=metadata,
        )


class LoggingAuditSink(AuditSink):
    """Writes audit events to a logger as structured records."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("webhook.audit")

    def record(self, action, tenant_id=None, entity_type=None, entity_id=None,
               correlation_id=None, metadata=None) -> None:
        level = logging.ERROR if action == INGESTION_FAILED else logging.INFO
        self.logger.log(
            level,
            f"Audit event {action}",
            extra={
                "audit_action": action,
                "tenant_id": tenant_id,
                "entity_type": entity_type,
                "work_item_id": entity_id,
                "correlation_id": correlation_id,
                "audit_metadata": metadata or {},
            }
        )


class CompositeAuditSink(AuditSink):
    """Fans one event out to several sinks, in order."""

    def __init__(self, sinks: List[AuditSink]):
        self.sinks = list(sinks)

    def record(self, action, tenant_id=None, entity_type=None, entity_id=None,
               correlation_id=None, metadata=None) -> None:
        for sink in self.sinks:
            sink.record(
                action,
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                correlation_id=correlation_id,
                metadata=metadata,
            )
