"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class PayRunStep(str, Enum):
    """Payroll run steps."""

    SELECT = "select"
    CALCULATING = "calculating"
    PREVIEW = "preview"
    COMMITTED = "committed"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_step: str, to_step: str, reason: str | None = None):
        self.from_step = from_step
        self.to_step = to_step
        self.reason = reason
        msg = f"Invalid transition from '{from_step}' to '{to_step}'"
        if reason:
            msg += f": {reason}"
        self.message = msg
        super().__init__(msg)


class PayRunStateMachine:
    """State machine for payroll run steps.

    Allowed transitions:
    - select → calculating
    - calculating → preview
    - calculating → select (every employee failed)
    - preview → committed
    - preview → select (discard)
    - committed → select (start a new run)
    """

    # Keyed by plain values; str-mixin enum members hash by name.
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayRunStep.SELECT.value: [PayRunStep.CALCULATING.value],
        PayRunStep.CALCULATING.value: [PayRunStep.PREVIEW.value, PayRunStep.SELECT.value],
        PayRunStep.PREVIEW.value: [PayRunStep.COMMITTED.value, PayRunStep.SELECT.value],
        PayRunStep.COMMITTED.value: [PayRunStep.SELECT.value],
    }

    # Steps where single-employee adjustments are allowed
    ADJUSTMENT_ALLOWED = {PayRunStep.PREVIEW.value}

    # Steps where paystubs are historical record
    RESULTS_IMMUTABLE = {PayRunStep.COMMITTED.value}

    @classmethod
    def can_transition(cls, from_step: str, to_step: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(_value(from_step), [])
        return _value(to_step) in allowed

    @classmethod
    def validate_transition(cls, from_step: str, to_step: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_step, to_step):
            raise InvalidTransitionError(_value(from_step), _value(to_step))

    @classmethod
    def can_adjust(cls, step: str) -> bool:
        return _value(step) in cls.ADJUSTMENT_ALLOWED

    @classmethod
    def are_results_immutable(cls, step: str) -> bool:
        return _value(step) in cls.RESULTS_IMMUTABLE

    @classmethod
    def is_discard(cls, from_step: str, to_step: str) -> bool:
        """Check if this transition throws away a preview."""
        return from_step == PayRunStep.PREVIEW and to_step == PayRunStep.SELECT

    @classmethod
    def get_next_steps(cls, current_step: str) -> list[str]:
        return cls.VALID_TRANSITIONS.get(_value(current_step), [])


def _value(step: str) -> str:
    return step.value if isinstance(step, PayRunStep) else step
