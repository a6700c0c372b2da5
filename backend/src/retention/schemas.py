"""Pydantic schemas for work item retention settings and statistics.

This module defines retention-related schemas:
- RetentionSettings: Retention period and relation handling for one sweep
- RetentionStatistics: Statistics about a retention sweep
"""

from datetime import datetime

from pydantic import BaseModel, Field


class RetentionSettings(BaseModel):
    """Retention configuration for work items.

    Work items older than work_item_retention_days are purged. Items that
    still take part in a work relation are kept unless purge_relations is set,
    in which case their relations are removed first.
    """

    work_item_retention_days: int = Field(
        default=90,
        ge=1,
        le=3650,
        description="Work item retention period in days (1-3650)"
    )

    purge_relations: bool = Field(
        default=False,
        description="Remove relations of aged work items so they can be purged"
    )


class RetentionStatistics(BaseModel):
    """Statistics from a retention sweep.

    Used for monitoring and alerting on retention job health.
    """

    job_started_at: datetime = Field(
        description="When the retention sweep started"
    )

    job_completed_at: datetime = Field(
        description="When the retention sweep completed"
    )

    duration_seconds: float = Field(
        ge=0.0,
        description="Sweep duration in seconds"
    )

    retention_days: int = Field(
        ge=1,
        description="Retention period applied"
    )

    work_items_deleted: int = Field(
        default=0,
        ge=0,
        description="Number of work items permanently deleted"
    )

    relations_deleted: int = Field(
        default=0,
        ge=0,
        description="Number of work relations removed to allow purging"
    )

    work_items_skipped: int = Field(
        default=0,
        ge=0,
        description="Aged work items kept because they still have relations"
    )

    @property
    def total_records_deleted(self) -> int:
        """Total number of rows deleted across both tables."""
        return self.work_items_deleted + self.relations_deleted

    @property
    def is_anomaly(self) -> bool:
        """Whether deletion volume exceeds normal thresholds (alert condition)."""
        return self.total_records_deleted > 10000
