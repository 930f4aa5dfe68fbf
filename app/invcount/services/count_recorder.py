from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from app.invcount.core.config import settings
from app.invcount.core.error_catalog import AppError, ErrorCatalog
from app.invcount.core.logging import log_json
from app.invcount.core.metrics import metrics
from app.invcount.core.statuses import (
    COUNTABLE_SESSION_STATUSES,
    REVIEWABLE_SESSION_STATUSES,
    ItemEvent,
    ItemStatus,
    ensure_item_event,
    ensure_session_status,
)
from app.invcount.db.models import CountItem, CountSession
from app.invcount.repos.count_sessions import CountSessionRepository
from app.invcount.services.aggregator import SessionAggregator

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


@dataclass
class BatchCountRow:
    sku: str
    quantity: int
    location: str | None = None


@dataclass
class BatchCountError:
    sku: str
    error: str
    code: str | None = None


@dataclass
class BatchCountResult:
    success: int = 0
    errors: list[BatchCountError] = field(default_factory=list)


@dataclass
class CountItemsPage:
    items: list[dict]
    total: int
    page: int
    page_size: int
    blind: bool

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


def variance_value_for(unit_cost, variance: int) -> Decimal:
    return (Decimal(unit_cost or 0) * abs(variance)).quantize(_CENT)


def set_final_quantity(item: CountItem, quantity: int) -> None:
    item.final_quantity = quantity
    item.variance = quantity - item.expected_quantity
    item.variance_value = variance_value_for(item.unit_cost, item.variance)


def clear_final_quantity(item: CountItem) -> None:
    item.final_quantity = None
    item.variance = None
    item.variance_value = None


def append_note(existing: str | None, label: str, text: str | None) -> str | None:
    if not text:
        return existing
    entry = f"{label}: {text}"
    if not existing:
        return entry
    return f"{existing}\n{entry}"


def validate_quantity(quantity, *, field_name: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": f"{field_name} must be a whole number", field_name: quantity},
        )
    if quantity < 0:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": f"{field_name} cannot be negative", field_name: quantity},
        )
    return quantity


def serialize_count_item(item: CountItem, *, blind: bool = False) -> dict:
    """Plain representation of a count line.

    With ``blind`` set, lines that have not been counted yet carry no
    ``expected_quantity`` key at all. Lines waiting for their second count
    also drop ``counted_quantity`` so the verifier starts from nothing.
    """
    ref = item.catalog_ref
    payload = {
        "id": str(item.id),
        "session_id": str(item.session_id),
        "catalog_type": ref.catalog_type.value,
        "catalog_id": str(ref.catalog_id),
        "variant_id": str(ref.variant_id) if ref.variant_id else None,
        "sku": item.sku,
        "description": item.description,
        "unit": item.unit,
        "category": item.category,
        "location": item.location,
        "expected_quantity": item.expected_quantity,
        "unit_cost": item.unit_cost,
        "counted_quantity": item.counted_quantity,
        "counted_by": item.counted_by,
        "counted_at": item.counted_at,
        "verified_quantity": item.verified_quantity,
        "verified_by": item.verified_by,
        "verified_at": item.verified_at,
        "reconciled_by": item.reconciled_by,
        "reconciled_at": item.reconciled_at,
        "final_quantity": item.final_quantity,
        "variance": item.variance,
        "variance_value": item.variance_value,
        "status": ItemStatus(item.status).value,
        "notes": item.notes,
    }
    if blind:
        item_status = ItemStatus(item.status)
        if item_status in (ItemStatus.NOT_COUNTED, ItemStatus.COUNTED):
            payload.pop("expected_quantity")
        if item_status is ItemStatus.COUNTED:
            payload.pop("counted_quantity")
    return payload


class CountRecorder:
    def __init__(self, db):
        self.db = db
        self.repo = CountSessionRepository(db)
        self.aggregator = SessionAggregator(db)

    def _get_session(self, session_id: str) -> CountSession:
        session = self.repo.get_session(session_id)
        if session is None:
            raise AppError(ErrorCatalog.SESSION_NOT_FOUND, details={"session_id": str(session_id)})
        return session

    def _get_item(self, session_id: str, item_id: str) -> CountItem:
        item = self.repo.get_item(session_id, item_id)
        if item is None:
            raise AppError(
                ErrorCatalog.ITEM_NOT_FOUND,
                details={"session_id": str(session_id), "item_id": str(item_id)},
            )
        return item

    def _apply_count(
        self,
        session: CountSession,
        item: CountItem,
        quantity: int,
        actor: str,
        notes: str | None,
    ) -> CountItem:
        if ItemStatus(item.status) is not ItemStatus.NOT_COUNTED:
            raise AppError(
                ErrorCatalog.ITEM_ALREADY_COUNTED,
                details={
                    "session_id": str(session.id),
                    "item_id": str(item.id),
                    "sku": item.sku,
                    "status": ItemStatus(item.status).value,
                },
            )
        validate_quantity(quantity)

        if session.require_double_count:
            target = ItemStatus.COUNTED
        elif quantity == item.expected_quantity:
            target = ItemStatus.RECONCILED
        else:
            target = ItemStatus.DISCREPANCY
        ensure_item_event(item, ItemEvent.COUNT, target)

        item.counted_quantity = quantity
        item.counted_by = actor
        item.counted_at = datetime.utcnow()
        item.notes = append_note(item.notes, "Count", notes)
        if session.require_double_count:
            clear_final_quantity(item)
        else:
            set_final_quantity(item, quantity)
        item.status = target
        metrics.record_count_submission(kind="count", status=target.value)
        return item

    def count_item(
        self,
        session_id: str,
        item_id: str,
        quantity: int,
        actor: str,
        notes: str | None = None,
    ) -> CountItem:
        session = self._get_session(session_id)
        ensure_session_status(session, COUNTABLE_SESSION_STATUSES, action="counting")
        item = self._get_item(session_id, item_id)
        self._apply_count(session, item, quantity, actor, notes)
        self.aggregator.refresh(session)
        self.db.commit()
        self.db.refresh(item)
        return item

    def verify_item(
        self,
        session_id: str,
        item_id: str,
        quantity: int,
        actor: str,
        notes: str | None = None,
    ) -> CountItem:
        session = self._get_session(session_id)
        item = self._get_item(session_id, item_id)
        if not session.require_double_count:
            raise AppError(
                ErrorCatalog.INVALID_STATE_TRANSITION,
                details={
                    "message": "count session does not require double counting",
                    "session_id": str(session.id),
                },
            )
        ensure_session_status(session, REVIEWABLE_SESSION_STATUSES, action="verification")
        if ItemStatus(item.status) is ItemStatus.NOT_COUNTED:
            ensure_item_event(item, ItemEvent.VERIFY)
        if ItemStatus(item.status) is not ItemStatus.COUNTED:
            raise AppError(
                ErrorCatalog.ITEM_ALREADY_VERIFIED,
                details={
                    "session_id": str(session.id),
                    "item_id": str(item.id),
                    "status": ItemStatus(item.status).value,
                },
            )
        validate_quantity(quantity)

        counts_match = quantity == item.counted_quantity
        if counts_match and quantity == item.expected_quantity:
            target = ItemStatus.VERIFIED
        else:
            target = ItemStatus.DISCREPANCY
        ensure_item_event(item, ItemEvent.VERIFY, target)

        item.verified_quantity = quantity
        item.verified_by = actor
        item.verified_at = datetime.utcnow()
        item.notes = append_note(item.notes, "Verification", notes)
        if counts_match:
            set_final_quantity(item, quantity)
        else:
            # two counts disagree; only a supervisor can pick the final value
            clear_final_quantity(item)
        item.status = target
        metrics.record_count_submission(kind="verify", status=target.value)

        self.aggregator.refresh(session)
        self.db.commit()
        self.db.refresh(item)
        return item

    def batch_count(self, session_id: str, rows: list[BatchCountRow], actor: str) -> BatchCountResult:
        """Apply scanner counts row by row.

        Rows that fail (unknown SKU, duplicate count, bad quantity) are
        reported in the result and never stop the remaining rows.
        """
        session = self._get_session(session_id)
        ensure_session_status(session, COUNTABLE_SESSION_STATUSES, action="batch counting")
        if len(rows) > settings.BATCH_COUNT_MAX_ROWS:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": f"batch exceeds {settings.BATCH_COUNT_MAX_ROWS} rows",
                    "rows": len(rows),
                },
            )

        result = BatchCountResult()
        for row in rows:
            try:
                candidates = self.repo.find_items_by_sku(session_id, row.sku, row.location)
                if not candidates:
                    raise AppError(
                        ErrorCatalog.SKU_NOT_IN_SESSION,
                        details={"sku": row.sku, "location": row.location, "session_id": str(session.id)},
                    )
                self._apply_count(session, candidates[0], row.quantity, actor, None)
                self.db.flush()
                result.success += 1
            except AppError as exc:
                result.errors.append(BatchCountError(sku=row.sku, error=exc.describe(), code=exc.code))

        if result.success:
            self.aggregator.refresh(session)
            self.db.commit()
        log_json(
            logger,
            {
                "event": "batch_count_processed",
                "session_id": str(session.id),
                "actor": actor,
                "rows": len(rows),
                "success": result.success,
                "errors": len(result.errors),
            },
        )
        return result

    def list_items_to_count(self, session_id: str, *, page: int = 1, page_size: int | None = None) -> CountItemsPage:
        session = self._get_session(session_id)
        page = max(page, 1)
        page_size = min(max(page_size or settings.ITEMS_PAGE_SIZE, 1), settings.MAX_PAGE_SIZE)
        items, total = self.repo.list_items_by_status(
            session_id, ItemStatus.NOT_COUNTED, page=page, page_size=page_size
        )
        blind = bool(session.allow_blind_count)
        return CountItemsPage(
            items=[serialize_count_item(item, blind=blind) for item in items],
            total=total,
            page=page,
            page_size=page_size,
            blind=blind,
        )
