"""WorkItemStatus state machine for the work item lifecycle.

State flow:
    PENDING → PROCESSING → COMPLETED or ERROR
    ERROR → PENDING (operator / automated retry)

The store does not enforce this table on unconditional updates; consumers
must honor it. The conditional primitives of WorkQueueStore follow it.
"""

from enum import IntEnum
from typing import Optional, Dict, List


class WorkItemStatus(IntEnum):
    """Work item status codes as persisted in work_item.status."""
    PENDING = 0
    PROCESSING = 5
    COMPLETED = 1
    ERROR = -1


ALLOWED_TRANSITIONS: Dict[Optional[WorkItemStatus], List[WorkItemStatus]] = {
    None: [WorkItemStatus.PENDING],
    WorkItemStatus.PENDING: [WorkItemStatus.PROCESSING],
    WorkItemStatus.PROCESSING: [WorkItemStatus.COMPLETED, WorkItemStatus.ERROR],
    WorkItemStatus.COMPLETED: [],  # Terminal
    WorkItemStatus.ERROR: [WorkItemStatus.PENDING],  # Retry
}


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


def can_transition(
    from_status: Optional[WorkItemStatus],
    to_status: WorkItemStatus
) -> bool:
    """Check whether a status transition follows the lifecycle.

    Args:
        from_status: Current status (None for new work items)
        to_status: Target status

    Returns:
        True if transition is allowed, False otherwise

    Example:
        >>> can_transition(WorkItemStatus.PENDING, WorkItemStatus.PROCESSING)
        True
        >>> can_transition(WorkItemStatus.PENDING, WorkItemStatus.COMPLETED)
        False
    """
    allowed = ALLOWED_TRANSITIONS.get(from_status, [])
    return to_status in allowed


def validate_transition(
    from_status: Optional[WorkItemStatus],
    to_status: WorkItemStatus
) -> None:
    """Validate that a status transition follows the lifecycle.

    Raises:
        StateTransitionError: If transition is not allowed
    """
    if not can_transition(from_status, to_status):
        allowed = get_allowed_transitions(from_status)
        current = from_status.name if from_status is not None else "NEW"
        raise StateTransitionError(
            f"Invalid transition: {current} -> {to_status.name}. "
            f"Allowed transitions from {current}: {[s.name for s in allowed]}"
        )


def get_allowed_transitions(
    from_status: Optional[WorkItemStatus]
) -> List[WorkItemStatus]:
    """Get list of allowed transitions from current status."""
    return ALLOWED_TRANSITIONS.get(from_status, [])
