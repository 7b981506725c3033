# app/services/transitions.py
"""Legal booking status changes.

The table below is the whole state machine: ``pending`` is the initial state,
``completed`` and ``cancelled`` are terminal. Nothing here knows who is asking
for a change; authorization belongs to the lifecycle service.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Union

from app.db.models.booking_status import BookingStatus

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.QUOTED, BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
    ),
    BookingStatus.QUOTED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

StatusLike = Union[BookingStatus, str]


@dataclass(frozen=True)
class TransitionResult:
    valid: bool
    reason: Optional[str] = None


def _coerce(status: StatusLike) -> Optional[BookingStatus]:
    try:
        return BookingStatus(status)
    except ValueError:
        return None


def _label(status: StatusLike) -> str:
    return status.value if isinstance(status, BookingStatus) else str(status)


def validate(current: StatusLike, requested: StatusLike) -> TransitionResult:
    """Return whether ``current -> requested`` is an edge of the state machine."""
    cur = _coerce(current)
    req = _coerce(requested)
    if cur is None:
        return TransitionResult(False, f"Unknown current status: {_label(current)}")
    if req is None:
        valid = ", ".join(s.value for s in BookingStatus)
        return TransitionResult(
            False, f"Invalid status {_label(requested)}. Must be one of: {valid}"
        )
    if req not in ALLOWED_TRANSITIONS[cur]:
        if is_terminal(cur):
            return TransitionResult(
                False, f"Cannot transition from {cur.value} to {req.value}: {cur.value} is final"
            )
        options = ", ".join(sorted(s.value for s in allowed_next(cur)))
        return TransitionResult(
            False, f"Cannot transition from {cur.value} to {req.value}. Allowed: {options}"
        )
    return TransitionResult(True)


def is_terminal(status: StatusLike) -> bool:
    st = _coerce(status)
    return st is not None and not ALLOWED_TRANSITIONS[st]


def allowed_next(status: StatusLike) -> FrozenSet[BookingStatus]:
    st = _coerce(status)
    if st is None:
        return frozenset()
    return ALLOWED_TRANSITIONS[st]
