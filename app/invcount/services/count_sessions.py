from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from app.invcount.core.catalog import CountFilters
from app.invcount.core.config import settings
from app.invcount.core.error_catalog import AppError, ErrorCatalog
from app.invcount.core.logging import log_json
from app.invcount.core.metrics import metrics
from app.invcount.core.statuses import CountType, ItemStatus, SessionStatus, ensure_session_transition
from app.invcount.db.models import CountSession
from app.invcount.repos.count_sessions import CountSessionQueryFilters, CountSessionRepository
from app.invcount.repos.stock_ledger import StockLedgerRepository
from app.invcount.services.adjustments import AdjustmentApplier, AdjustmentSummary
from app.invcount.services.aggregator import SessionAggregator
from app.invcount.services.count_recorder import append_note, serialize_count_item
from app.invcount.services.session_codes import next_session_code
from app.invcount.services.snapshot import SnapshotBuilder

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = (
    "name",
    "description",
    "planned_date",
    "count_type",
    "require_double_count",
    "freeze_inventory",
    "allow_blind_count",
)


@dataclass
class SessionStats:
    total_items: int
    counted_items: int
    verified_items: int
    discrepancy_items: int
    progress: int


@dataclass
class SessionDetail:
    session: CountSession
    items: list[dict]
    stats: SessionStats


@dataclass
class SessionPage:
    rows: list[CountSession]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


@dataclass
class CompletionResult:
    session: CountSession
    adjustments: AdjustmentSummary | None


def compute_stats(items) -> SessionStats:
    total = len(items)
    counted = sum(1 for item in items if ItemStatus(item.status) is not ItemStatus.NOT_COUNTED)
    verified = sum(
        1 for item in items if ItemStatus(item.status) in (ItemStatus.VERIFIED, ItemStatus.RECONCILED)
    )
    discrepancies = sum(1 for item in items if item.variance)
    progress = round(counted * 100 / total) if total else 0
    return SessionStats(
        total_items=total,
        counted_items=counted,
        verified_items=verified,
        discrepancy_items=discrepancies,
        progress=progress,
    )


class CountSessionService:
    def __init__(self, db):
        self.db = db
        self.repo = CountSessionRepository(db)
        self.ledger = StockLedgerRepository(db)
        self.aggregator = SessionAggregator(db)

    def _get_session(self, session_id) -> CountSession:
        session = self.repo.get_session(session_id)
        if session is None:
            raise AppError(ErrorCatalog.SESSION_NOT_FOUND, details={"session_id": str(session_id)})
        return session

    def _log_transition(self, event: str, session: CountSession, actor: str | None, **extra) -> None:
        status = SessionStatus(session.status)
        metrics.record_session_transition(status.value)
        payload = {
            "event": event,
            "session_id": str(session.id),
            "session_code": session.code,
            "status": status.value,
            "actor": actor,
        }
        payload.update(extra)
        log_json(logger, payload)

    def create_session(
        self,
        *,
        warehouse_id,
        name: str,
        actor: str,
        count_type: CountType = CountType.FULL,
        require_double_count: bool = False,
        freeze_inventory: bool = False,
        allow_blind_count: bool | None = None,
        filters: CountFilters | None = None,
        description: str | None = None,
        planned_date: date | None = None,
    ) -> CountSession:
        warehouse = self.ledger.get_warehouse(warehouse_id)
        if warehouse is None:
            raise AppError(ErrorCatalog.WAREHOUSE_NOT_FOUND, details={"warehouse_id": str(warehouse_id)})
        if not name or not name.strip():
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "name is required"})

        session = CountSession(
            code=next_session_code(self.db, warehouse.code),
            warehouse_id=warehouse.id,
            name=name.strip(),
            description=description,
            count_type=CountType(count_type),
            planned_date=planned_date,
            require_double_count=require_double_count,
            freeze_inventory=freeze_inventory,
            allow_blind_count=settings.DEFAULT_ALLOW_BLIND_COUNT if allow_blind_count is None else allow_blind_count,
            status=SessionStatus.DRAFT,
            created_by=actor,
            created_at=datetime.utcnow(),
        )
        session.filters = filters or CountFilters()
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        self._log_transition("count_session_created", session, actor, warehouse_code=warehouse.code)
        return session

    def update_session(self, session_id, changes: dict, *, filters: CountFilters | None = None) -> CountSession:
        session = self._get_session(session_id)
        if SessionStatus(session.status) is not SessionStatus.DRAFT:
            raise AppError(
                ErrorCatalog.INVALID_STATE_TRANSITION,
                details={
                    "message": "only DRAFT count sessions can be edited",
                    "session_id": str(session.id),
                    "status": SessionStatus(session.status).value,
                },
            )
        unknown = sorted(set(changes) - set(_UPDATABLE_FIELDS))
        if unknown:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "fields cannot be updated", "fields": unknown},
            )
        if "name" in changes and not (changes["name"] or "").strip():
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "name is required"})

        for field_name, value in changes.items():
            if field_name == "count_type" and value is not None:
                value = CountType(value)
            if field_name == "name":
                value = value.strip()
            if value is None and field_name not in ("description", "planned_date"):
                continue
            setattr(session, field_name, value)
        if filters is not None:
            session.filters = filters
        self.db.commit()
        self.db.refresh(session)
        return session

    def start_session(self, session_id, actor: str) -> CountSession:
        """Snapshot the ledger and open the session for counting.

        The snapshot lines and the status change are committed together; a
        failure while building the snapshot leaves the session in DRAFT.
        """
        session = self._get_session(session_id)
        ensure_session_transition(session, SessionStatus.IN_PROGRESS)
        try:
            items = SnapshotBuilder(self.db).build(session)
            session.status = SessionStatus.IN_PROGRESS
            session.total_items = len(items)
            session.started_by = actor
            session.started_at = datetime.utcnow()
            self.aggregator.refresh(session)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(session)
        self._log_transition("count_session_started", session, actor, total_items=session.total_items)
        return session

    def get_session(self, session_id) -> SessionDetail:
        session = self._get_session(session_id)
        items = self.repo.list_items(session_id)
        blind = bool(session.allow_blind_count)
        return SessionDetail(
            session=session,
            items=[serialize_count_item(item, blind=blind) for item in items],
            stats=compute_stats(items),
        )

    def list_sessions(
        self,
        filters: CountSessionQueryFilters | None = None,
        *,
        page: int = 1,
        page_size: int | None = None,
    ) -> SessionPage:
        page = max(page, 1)
        page_size = min(max(page_size or settings.SESSIONS_PAGE_SIZE, 1), settings.MAX_PAGE_SIZE)
        rows, total = self.repo.list_sessions(
            filters or CountSessionQueryFilters(), page=page, page_size=page_size
        )
        return SessionPage(rows=rows, total=total, page=page, page_size=page_size)

    def submit_for_review(self, session_id, actor: str | None = None) -> CountSession:
        session = self._get_session(session_id)
        ensure_session_transition(session, SessionStatus.PENDING_REVIEW)
        pending = self.repo.status_counts(str(session.id))[ItemStatus.NOT_COUNTED]
        if pending:
            raise AppError(
                ErrorCatalog.ITEMS_UNRESOLVED,
                details={
                    "message": f"{pending} items not yet counted",
                    "session_id": str(session.id),
                    "status": SessionStatus(session.status).value,
                    "not_counted": pending,
                },
            )
        session.status = SessionStatus.PENDING_REVIEW
        self.db.commit()
        self.db.refresh(session)
        self._log_transition("count_session_submitted", session, actor)
        return session

    def complete_session(self, session_id, actor: str, apply_adjustments: bool = True) -> CompletionResult:
        """Close the session and write reconciled quantities to the ledger.

        Ledger overwrites, adjustment movements and the COMPLETED status are
        one transaction: if any write fails the ledger and the session are
        left exactly as they were.
        """
        session = self._get_session(session_id)
        ensure_session_transition(session, SessionStatus.COMPLETED)
        counts = self.repo.status_counts(str(session.id))
        blocking = [ItemStatus.NOT_COUNTED, ItemStatus.DISCREPANCY]
        if session.require_double_count:
            blocking.append(ItemStatus.COUNTED)
        unresolved = sum(counts[status] for status in blocking)
        if unresolved:
            raise AppError(
                ErrorCatalog.ITEMS_UNRESOLVED,
                details={
                    "message": f"{unresolved} items still unresolved",
                    "session_id": str(session.id),
                    "status": SessionStatus(session.status).value,
                    "unresolved": unresolved,
                    "by_status": {status.value: counts[status] for status in blocking if counts[status]},
                },
            )

        summary = None
        try:
            if apply_adjustments:
                items = self.repo.list_items(str(session.id))
                summary = AdjustmentApplier(self.db).apply(session, items, actor)
            session.status = SessionStatus.COMPLETED
            session.completed_by = actor
            session.completed_at = datetime.utcnow()
            self.aggregator.refresh(session)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(session)

        if summary is not None:
            AdjustmentApplier.record_metrics(summary)
            log_json(
                logger,
                {
                    "event": "inventory_adjustments_applied",
                    "session_id": str(session.id),
                    "session_code": session.code,
                    "actor": actor,
                    "adjusted_lines": summary.adjusted_lines,
                },
            )
        self._log_transition(
            "count_session_completed",
            session,
            actor,
            apply_adjustments=apply_adjustments,
            total_variance_value=str(session.total_variance_value),
        )
        return CompletionResult(session=session, adjustments=summary)

    def cancel_session(self, session_id, reason: str | None = None, actor: str | None = None) -> CountSession:
        session = self._get_session(session_id)
        ensure_session_transition(session, SessionStatus.CANCELLED)
        session.notes = append_note(session.notes, "Cancellation reason", reason)
        session.status = SessionStatus.CANCELLED
        session.cancelled_by = actor
        session.cancelled_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(session)
        self._log_transition("count_session_cancelled", session, actor, reason=reason)
        return session
