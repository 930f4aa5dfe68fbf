import logging
from dataclasses import dataclass
from datetime import datetime

from app.invcount.db.models import AuditEvent
from app.invcount.repos.audit import AuditRepository

logger = logging.getLogger(__name__)


@dataclass
class AuditEventPayload:
    actor: str
    action: str
    entity_type: str
    entity_id: str | None
    result: str
    trace_id: str | None = None
    metadata: dict | None = None


class AuditService:
    """Best-effort lifecycle audit log for count sessions.

    Failures are logged and swallowed so a committed count operation is never
    reported as failed because its audit row could not be written.
    """

    def __init__(self, db):
        self.db = db
        self.repo = AuditRepository(db)

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            event = AuditEvent(
                actor=payload.actor,
                action=payload.action,
                entity_type=payload.entity_type,
                entity_id=payload.entity_id,
                trace_id=payload.trace_id,
                event_metadata=dict(payload.metadata or {}),
                result=payload.result,
                created_at=datetime.utcnow(),
            )
            self.repo.create(event)
        except Exception:
            self.db.rollback()
            logger.exception(
                "Failed to write audit event",
                extra={
                    "action": payload.action,
                    "trace_id": payload.trace_id,
                    "entity_id": payload.entity_id,
                },
            )
