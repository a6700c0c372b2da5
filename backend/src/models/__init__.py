"""SQLAlchemy Models for the webhook work queue"""

from .base import Base
from .tenant import Tenant
from .work_item import WorkItem
from .work_relation import WorkRelation
from .audit_log import AuditLog

__all__ = [
    "Base",
    "Tenant",
    "WorkItem",
    "WorkRelation",
    "AuditLog",
]
