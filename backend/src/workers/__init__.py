"""Background workers for the work queue.

This module provides:
- WorkItemConsumer: reference downstream consumer (claim, process, report)
- reset_failed_descendants: retry sweep for failed workflow items
- celery_app (workers.celery_app): Celery application for maintenance tasks

Every consumer MUST pass work items through Processing: claim first, then
report Completed or Error.
"""

from .consumer import ClaimedWorkItem, WorkItemConsumer
from .retry_sweep import reset_failed_descendants

__all__ = [
    "ClaimedWorkItem",
    "WorkItemConsumer",
    "reset_failed_descendants",
]
