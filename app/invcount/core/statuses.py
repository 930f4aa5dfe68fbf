"""Status enums and the transition tables that govern them.

Session and item transitions are only ever checked here, so an illegal move
is rejected the same way no matter which operation attempted it.
"""
from __future__ import annotations

from enum import Enum

from app.invcount.core.error_catalog import AppError, ErrorCatalog


class CountType(str, Enum):
    FULL = "FULL"
    CYCLE = "CYCLE"
    SPOT = "SPOT"


class SessionStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ItemStatus(str, Enum):
    NOT_COUNTED = "NOT_COUNTED"
    COUNTED = "COUNTED"
    VERIFIED = "VERIFIED"
    DISCREPANCY = "DISCREPANCY"
    RECONCILED = "RECONCILED"


SESSION_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.DRAFT: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED}),
    SessionStatus.IN_PROGRESS: frozenset(
        {SessionStatus.PENDING_REVIEW, SessionStatus.COMPLETED, SessionStatus.CANCELLED}
    ),
    SessionStatus.PENDING_REVIEW: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


class ItemEvent(str, Enum):
    COUNT = "COUNT"
    VERIFY = "VERIFY"
    RECONCILE = "RECONCILE"


# RECONCILE on a RECONCILED line is a supervisor overwriting an earlier settlement.
ITEM_TRANSITIONS: dict[ItemEvent, dict[ItemStatus, frozenset[ItemStatus]]] = {
    ItemEvent.COUNT: {
        ItemStatus.NOT_COUNTED: frozenset(
            {ItemStatus.COUNTED, ItemStatus.RECONCILED, ItemStatus.DISCREPANCY}
        ),
    },
    ItemEvent.VERIFY: {
        ItemStatus.COUNTED: frozenset({ItemStatus.VERIFIED, ItemStatus.DISCREPANCY}),
    },
    ItemEvent.RECONCILE: {
        ItemStatus.DISCREPANCY: frozenset({ItemStatus.RECONCILED}),
        ItemStatus.RECONCILED: frozenset({ItemStatus.RECONCILED}),
    },
}

# Sessions in these states still accept item mutations.
COUNTABLE_SESSION_STATUSES = frozenset({SessionStatus.IN_PROGRESS})
REVIEWABLE_SESSION_STATUSES = frozenset({SessionStatus.IN_PROGRESS, SessionStatus.PENDING_REVIEW})


def can_transition_session(current: SessionStatus, target: SessionStatus) -> bool:
    return target in SESSION_TRANSITIONS[SessionStatus(current)]


def can_apply_item_event(current: ItemStatus, event: ItemEvent, target: ItemStatus | None = None) -> bool:
    targets = ITEM_TRANSITIONS[event].get(ItemStatus(current))
    if targets is None:
        return False
    return target is None or target in targets


def ensure_session_transition(session, target: SessionStatus) -> None:
    if not can_transition_session(session.status, target):
        raise AppError(
            ErrorCatalog.INVALID_STATE_TRANSITION,
            details={
                "message": f"count session cannot move from {SessionStatus(session.status).value} to {target.value}",
                "session_id": str(session.id),
                "status": SessionStatus(session.status).value,
                "target_status": target.value,
            },
        )


def ensure_item_event(item, event: ItemEvent, target: ItemStatus | None = None) -> None:
    if not can_apply_item_event(item.status, event, target):
        details = {
            "message": f"{event.value.lower()} is not allowed for a count item in status {ItemStatus(item.status).value}",
            "session_id": str(item.session_id),
            "item_id": str(item.id),
            "status": ItemStatus(item.status).value,
            "event": event.value,
        }
        if target is not None:
            details["target_status"] = target.value
        raise AppError(ErrorCatalog.INVALID_STATE_TRANSITION, details=details)


def ensure_session_status(session, allowed: frozenset[SessionStatus], *, action: str) -> None:
    if SessionStatus(session.status) not in allowed:
        raise AppError(
            ErrorCatalog.INVALID_STATE_TRANSITION,
            details={
                "message": f"{action} is not allowed while the count session is {SessionStatus(session.status).value}",
                "session_id": str(session.id),
                "status": SessionStatus(session.status).value,
                "allowed_statuses": sorted(status.value for status in allowed),
            },
        )
