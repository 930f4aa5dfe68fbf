from __future__ import annotations

from datetime import datetime

from app.invcount.core.error_catalog import AppError, ErrorCatalog
from app.invcount.core.metrics import metrics
from app.invcount.core.statuses import (
    REVIEWABLE_SESSION_STATUSES,
    ItemEvent,
    ItemStatus,
    ensure_item_event,
    ensure_session_status,
)
from app.invcount.db.models import CountItem
from app.invcount.repos.count_sessions import CountSessionRepository
from app.invcount.services.aggregator import SessionAggregator
from app.invcount.services.count_recorder import append_note, set_final_quantity, validate_quantity


class ReconciliationService:
    def __init__(self, db):
        self.db = db
        self.repo = CountSessionRepository(db)
        self.aggregator = SessionAggregator(db)

    def reconcile_item(
        self,
        session_id: str,
        item_id: str,
        final_quantity: int,
        actor: str,
        reason: str | None = None,
    ) -> CountItem:
        """Settle a line whose counts could not be accepted automatically.

        The supervisor's quantity may differ from both counts. Repeating the
        call on a reconciled line overwrites the final quantity and appends the
        new reason after the earlier ones. ``reconciled_by`` keeps the last
        supervisor to settle the line.
        """
        session = self.repo.get_session(session_id)
        if session is None:
            raise AppError(ErrorCatalog.SESSION_NOT_FOUND, details={"session_id": str(session_id)})
        ensure_session_status(session, REVIEWABLE_SESSION_STATUSES, action="reconciliation")
        item = self.repo.get_item(session_id, item_id)
        if item is None:
            raise AppError(
                ErrorCatalog.ITEM_NOT_FOUND,
                details={"session_id": str(session_id), "item_id": str(item_id)},
            )
        ensure_item_event(item, ItemEvent.RECONCILE, ItemStatus.RECONCILED)
        validate_quantity(final_quantity, field_name="final_quantity")

        set_final_quantity(item, final_quantity)
        item.notes = append_note(item.notes, "Reconciliation", reason)
        item.reconciled_by = actor
        item.reconciled_at = datetime.utcnow()
        item.status = ItemStatus.RECONCILED
        metrics.record_count_submission(kind="reconcile", status=ItemStatus.RECONCILED.value)

        self.aggregator.refresh(session)
        self.db.commit()
        self.db.refresh(item)
        return item

    def list_discrepancies(self, session_id: str) -> list[CountItem]:
        if self.repo.get_session(session_id) is None:
            raise AppError(ErrorCatalog.SESSION_NOT_FOUND, details={"session_id": str(session_id)})
        return self.repo.list_discrepancies(session_id)
