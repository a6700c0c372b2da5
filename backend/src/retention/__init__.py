"""Work item retention module.

Age-based sweep that is the only path by which work items are deleted.

This module provides:
- Retention settings and sweep statistics
- WorkItemRetentionService (retention.service)
- Celery task retention.purge_work_items (retention.tasks)
"""

from .schemas import (
    RetentionSettings,
    RetentionStatistics,
)

# Service and tasks are imported lazily to avoid circular dependencies
# Use: from retention.service import WorkItemRetentionService
# Use: from retention.tasks import purge_work_items_task

__all__ = [
    "RetentionSettings",
    "RetentionStatistics",
]
