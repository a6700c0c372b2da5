"""Work item domain module - status lifecycle and operation scopes"""

from .status import (
    WorkItemStatus,
    ALLOWED_TRANSITIONS,
    StateTransitionError,
    can_transition,
    validate_transition,
    get_allowed_transitions,
)
from .scope import WorkScope, is_real_scope

__all__ = [
    "WorkItemStatus",
    "ALLOWED_TRANSITIONS",
    "StateTransitionError",
    "can_transition",
    "validate_transition",
    "get_allowed_transitions",
    "WorkScope",
    "is_real_scope",
]
