"""
Legal status transitions for reschedule requests.

Only a pending request can change status. Whether an approved request
has actually moved the booking is tracked separately by processed_at.
"""

from typing import Dict, Set

from app.core.exceptions import InvalidStateTransitionError
from app.models.enums import RescheduleStatus


class RescheduleStateMachine:
    _ALLOWED_TRANSITIONS: Dict[RescheduleStatus, Set[RescheduleStatus]] = {
        RescheduleStatus.PENDING: {
            RescheduleStatus.APPROVED,
            RescheduleStatus.APPROVED_WITH_CHARGE,
            RescheduleStatus.REJECTED,
            RescheduleStatus.CANCELLED,
        },
        RescheduleStatus.APPROVED: set(),
        RescheduleStatus.APPROVED_WITH_CHARGE: set(),
        RescheduleStatus.REJECTED: set(),
        RescheduleStatus.CANCELLED: set(),
    }

    # Statuses whose inventory swap may still be run.
    PROCESSABLE: Set[RescheduleStatus] = {
        RescheduleStatus.APPROVED,
        RescheduleStatus.APPROVED_WITH_CHARGE,
    }

    @classmethod
    def can_transition(cls, from_status: RescheduleStatus, to_status: RescheduleStatus) -> bool:
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)
        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: RescheduleStatus, to_status: RescheduleStatus) -> None:
        """Raises InvalidStateTransitionError if the transition is illegal."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(from_state=from_status.value, to_state=to_status.value)

    @classmethod
    def is_terminal(cls, status: RescheduleStatus, processed: bool = False) -> bool:
        """
        Nothing further can happen to the request: its status is final and,
        if it was approved, the booking has already been moved.
        """
        cls._ensure_valid_status(status)
        if status in cls.PROCESSABLE and not processed:
            return False
        return not cls._ALLOWED_TRANSITIONS.get(status)

    @classmethod
    def get_allowed_transitions(cls, status: RescheduleStatus) -> Set[RescheduleStatus]:
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def _ensure_valid_status(status: RescheduleStatus) -> None:
        if not isinstance(status, RescheduleStatus):
            raise TypeError(f"Expected RescheduleStatus, got {type(status)}")
