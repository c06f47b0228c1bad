"""Relay session state machine."""

from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle states of a persisted relay session.

    A checkpoint is written only once source metadata is known and the
    destination session is open, so the first stored state is STREAMING.
    """

    STREAMING = "STREAMING"
    WINDOW_EXPIRED = "WINDOW_EXPIRED"
    FINALIZING = "FINALIZING"
    DONE = "DONE"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({SessionStatus.DONE, SessionStatus.FAILED})

# Sessions the reaper considers for re-dispatch once their checkpoint goes stale.
RESUMABLE_STATUSES = frozenset({SessionStatus.STREAMING, SessionStatus.WINDOW_EXPIRED})

_ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.STREAMING: frozenset(
        {SessionStatus.WINDOW_EXPIRED, SessionStatus.FINALIZING}
    ),
    SessionStatus.WINDOW_EXPIRED: frozenset({SessionStatus.STREAMING}),
    SessionStatus.FINALIZING: frozenset({SessionStatus.DONE}),
    SessionStatus.DONE: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return whether `current -> target` is a legal move.

    FAILED is reachable from every non-terminal state.
    """

    if target is SessionStatus.FAILED:
        return current not in TERMINAL_STATUSES
    return target in _ALLOWED_TRANSITIONS[current]


__all__ = [
    "RESUMABLE_STATUSES",
    "SessionStatus",
    "TERMINAL_STATUSES",
    "can_transition",
]
