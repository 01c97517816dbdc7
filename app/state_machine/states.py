"""
Wash Session Lifecycle - states, actions and the transition graph

CREATED -> AUTHORIZED -> IN_PROGRESS -> COMPLETED -> LOCKED
CREATED / AUTHORIZED -> REJECTED
"""
from enum import Enum
from typing import Dict

from app.db.models.wash_session import WashSessionStatus


class TransitionAction(str, Enum):
    """Operations that move a session between states"""

    AUTHORIZE = "authorize"
    START = "start"
    COMPLETE = "complete"
    REJECT = "reject"
    LOCK = "lock"


# source state -> {action: target state}
WASH_SESSION_TRANSITIONS: Dict[WashSessionStatus, Dict[TransitionAction, WashSessionStatus]] = {
    WashSessionStatus.CREATED: {
        TransitionAction.AUTHORIZE: WashSessionStatus.AUTHORIZED,
        TransitionAction.REJECT: WashSessionStatus.REJECTED,
    },
    WashSessionStatus.AUTHORIZED: {
        TransitionAction.START: WashSessionStatus.IN_PROGRESS,
        TransitionAction.REJECT: WashSessionStatus.REJECTED,
    },
    WashSessionStatus.IN_PROGRESS: {
        TransitionAction.COMPLETE: WashSessionStatus.COMPLETED,
    },
    WashSessionStatus.COMPLETED: {
        TransitionAction.LOCK: WashSessionStatus.LOCKED,
    },
    WashSessionStatus.LOCKED: {},
    WashSessionStatus.REJECTED: {},
}

TERMINAL_STATES = frozenset(
    status for status, edges in WASH_SESSION_TRANSITIONS.items() if not edges
)

# Timestamp column stamped when the session enters a state
STATE_TIMESTAMP_FIELDS = {
    WashSessionStatus.AUTHORIZED: "authorized_at",
    WashSessionStatus.IN_PROGRESS: "started_at",
    WashSessionStatus.COMPLETED: "completed_at",
    WashSessionStatus.LOCKED: "locked_at",
    WashSessionStatus.REJECTED: "rejected_at",
}


def next_state(current: WashSessionStatus, action: TransitionAction) -> WashSessionStatus | None:
    """Target state of ``action`` from ``current``, or None if the move is not allowed."""
    return WASH_SESSION_TRANSITIONS.get(WashSessionStatus(current), {}).get(TransitionAction(action))


def allowed_actions(current: WashSessionStatus) -> list[TransitionAction]:
    return list(WASH_SESSION_TRANSITIONS.get(WashSessionStatus(current), {}))


def is_terminal(status: WashSessionStatus) -> bool:
    return WashSessionStatus(status) in TERMINAL_STATES
