from __future__ import annotations

from dataclasses import asdict
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.invcount.core.catalog import CountFilters
from app.invcount.core.context import RequestContext, get_request_context
from app.invcount.core.deps import get_trace_id, require_actor
from app.invcount.core.error_catalog import AppError, ErrorCatalog
from app.invcount.core.statuses import CountType, SessionStatus
from app.invcount.db.models import CountSession
from app.invcount.db.session import get_db
from app.invcount.repos.count_sessions import CountSessionQueryFilters
from app.invcount.schemas.count_sessions import (
    AdjustmentSummaryResponse,
    BatchCountErrorResponse,
    BatchCountRequest,
    BatchCountResponse,
    CountFiltersPayload,
    CountFiltersResponse,
    CountItemLine,
    CountItemsPageResponse,
    CountSessionActionRequest,
    CountSessionActionResponse,
    CountSessionCreateRequest,
    CountSessionDetailResponse,
    CountSessionListResponse,
    CountSessionResponse,
    CountSessionStats,
    CountSessionUpdateRequest,
    CountSubmitRequest,
    ReconcileRequest,
    VarianceReportResponse,
)
from app.invcount.schemas.errors import ApiErrorResponse, ApiValidationErrorResponse
from app.invcount.services.adjustments import adjustment_reference
from app.invcount.services.audit import AuditEventPayload, AuditService
from app.invcount.services.count_recorder import BatchCountRow, CountRecorder, serialize_count_item
from app.invcount.services.count_sessions import CountSessionService
from app.invcount.services.reconciliation import ReconciliationService
from app.invcount.services.variance_report import generate_variance_report


router = APIRouter()
_BASE = "/invcount/count-sessions"
_ERROR_RESPONSES = {
    404: {"model": ApiErrorResponse},
    409: {"model": ApiErrorResponse},
    422: {"model": ApiValidationErrorResponse},
}


def _filters_from_payload(payload: CountFiltersPayload | None) -> CountFilters:
    if payload is None:
        return CountFilters()
    return CountFilters.build(
        categories=payload.categories,
        locations=payload.locations,
        sku_prefix=payload.sku_prefix,
        scope=payload.scope,
        material_only=payload.material_only,
        product_only=payload.product_only,
    )


def _session_fields(session: CountSession) -> dict:
    filters = session.filters
    return {
        "id": str(session.id),
        "code": session.code,
        "warehouse_id": str(session.warehouse_id),
        "name": session.name,
        "description": session.description,
        "count_type": CountType(session.count_type),
        "planned_date": session.planned_date,
        "require_double_count": session.require_double_count,
        "freeze_inventory": session.freeze_inventory,
        "allow_blind_count": session.allow_blind_count,
        "filters": CountFiltersResponse(
            categories=sorted(filters.categories),
            locations=sorted(filters.locations),
            sku_prefix=filters.sku_prefix,
            scope=filters.scope,
        ),
        "status": SessionStatus(session.status),
        "total_items": session.total_items,
        "counted_items": session.counted_items,
        "discrepancy_count": session.discrepancy_count,
        "total_variance_value": session.total_variance_value,
        "notes": session.notes,
        "created_by": session.created_by,
        "created_at": session.created_at,
        "started_by": session.started_by,
        "started_at": session.started_at,
        "completed_by": session.completed_by,
        "completed_at": session.completed_at,
        "cancelled_by": session.cancelled_by,
        "cancelled_at": session.cancelled_at,
        "updated_at": session.updated_at,
    }


def _session_response(session: CountSession) -> CountSessionResponse:
    return CountSessionResponse(**_session_fields(session))


def _item_line(item, *, blind: bool = False) -> CountItemLine:
    return CountItemLine(**serialize_count_item(item, blind=blind))


def _record_audit(db, request: Request, *, actor: str | None, action: str, session: CountSession, metadata=None):
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor or "unknown",
            action=action,
            entity_type="count_session",
            entity_id=str(session.id),
            trace_id=get_trace_id(request),
            metadata={"code": session.code, "status": SessionStatus(session.status).value, **(metadata or {})},
            result="success",
        )
    )


@router.post(_BASE, response_model=CountSessionResponse, status_code=201, responses=_ERROR_RESPONSES)
def create_count_session(
    request: Request,
    payload: CountSessionCreateRequest,
    actor: str = Depends(require_actor),
    db=Depends(get_db),
):
    session = CountSessionService(db).create_session(
        warehouse_id=payload.warehouse_id,
        name=payload.name,
        actor=actor,
        count_type=payload.count_type,
        require_double_count=payload.require_double_count,
        freeze_inventory=payload.freeze_inventory,
        allow_blind_count=payload.allow_blind_count,
        filters=_filters_from_payload(payload.filters),
        description=payload.description,
        planned_date=payload.planned_date,
    )
    response = _session_response(session)
    _record_audit(db, request, actor=actor, action="count_session.create", session=session)
    return response


@router.get(_BASE, response_model=CountSessionListResponse)
def list_count_sessions(
    warehouse_id: UUID | None = None,
    status: list[SessionStatus] | None = Query(default=None),
    count_type: CountType | None = None,
    planned_from: date | None = None,
    planned_to: date | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    db=Depends(get_db),
):
    filters = CountSessionQueryFilters(
        warehouse_id=str(warehouse_id) if warehouse_id else None,
        statuses=tuple(status or ()),
        count_type=count_type,
        date_from=planned_from,
        date_to=planned_to,
    )
    result = CountSessionService(db).list_sessions(filters, page=page, page_size=page_size)
    return CountSessionListResponse(
        rows=[_session_response(row) for row in result.rows],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get(
    f"{_BASE}/{{session_id}}",
    response_model=CountSessionDetailResponse,
    response_model_exclude_unset=True,
    responses=_ERROR_RESPONSES,
)
def get_count_session(session_id: UUID, db=Depends(get_db)):
    detail = CountSessionService(db).get_session(session_id)
    return CountSessionDetailResponse(
        **_session_fields(detail.session),
        stats=CountSessionStats(**asdict(detail.stats)),
        items=[CountItemLine(**item) for item in detail.items],
    )


@router.patch(f"{_BASE}/{{session_id}}", response_model=CountSessionResponse, responses=_ERROR_RESPONSES)
def update_count_session(
    session_id: UUID,
    request: Request,
    payload: CountSessionUpdateRequest,
    context: RequestContext = Depends(get_request_context),
    db=Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    filters_payload = changes.pop("filters", None)
    filters = _filters_from_payload(payload.filters) if filters_payload is not None else None
    session = CountSessionService(db).update_session(session_id, changes, filters=filters)
    response = _session_response(session)
    _record_audit(
        db,
        request,
        actor=context.actor,
        action="count_session.update",
        session=session,
        metadata={"fields": sorted(changes) + (["filters"] if filters is not None else [])},
    )
    return response


@router.post(
    f"{_BASE}/{{session_id}}/actions",
    response_model=CountSessionActionResponse,
    responses=_ERROR_RESPONSES,
)
def count_session_actions(
    session_id: UUID,
    request: Request,
    payload: CountSessionActionRequest,
    context: RequestContext = Depends(get_request_context),
    db=Depends(get_db),
):
    service = CountSessionService(db)
    adjustments = None
    metadata: dict = {}

    if payload.action == "START":
        actor = require_actor(context)
        session = service.start_session(session_id, actor)
        metadata["total_items"] = session.total_items
    elif payload.action == "SUBMIT_FOR_REVIEW":
        session = service.submit_for_review(session_id, context.actor)
    elif payload.action == "COMPLETE":
        actor = require_actor(context)
        result = service.complete_session(session_id, actor, apply_adjustments=payload.apply_adjustments)
        session = result.session
        if result.adjustments is not None:
            adjustments = AdjustmentSummaryResponse(
                adjusted_lines=result.adjustments.adjusted_lines,
                surplus_lines=result.adjustments.surplus_lines,
                shortfall_lines=result.adjustments.shortfall_lines,
                reference=adjustment_reference(session.code),
            )
            metadata["adjusted_lines"] = result.adjustments.adjusted_lines
        metadata["apply_adjustments"] = payload.apply_adjustments
    elif payload.action == "CANCEL":
        session = service.cancel_session(session_id, reason=payload.reason, actor=context.actor)
        if payload.reason:
            metadata["reason"] = payload.reason
    else:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"unknown action {payload.action}"})

    response = CountSessionActionResponse(session=_session_response(session), adjustments=adjustments)
    _record_audit(
        db,
        request,
        actor=context.actor,
        action=f"count_session.{payload.action.lower()}",
        session=session,
        metadata=metadata,
    )
    return response


@router.get(
    f"{_BASE}/{{session_id}}/items/to-count",
    response_model=CountItemsPageResponse,
    response_model_exclude_unset=True,
    responses=_ERROR_RESPONSES,
)
def list_items_to_count(
    session_id: UUID,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    db=Depends(get_db),
):
    result = CountRecorder(db).list_items_to_count(session_id, page=page, page_size=page_size)
    return CountItemsPageResponse(
        rows=[CountItemLine(**item) for item in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        blind=result.blind,
    )


@router.get(
    f"{_BASE}/{{session_id}}/items/discrepancies",
    response_model=list[CountItemLine],
    responses=_ERROR_RESPONSES,
)
def list_discrepancies(session_id: UUID, db=Depends(get_db)):
    return [_item_line(item) for item in ReconciliationService(db).list_discrepancies(session_id)]


@router.post(
    f"{_BASE}/{{session_id}}/items/{{item_id}}/count",
    response_model=CountItemLine,
    responses=_ERROR_RESPONSES,
    response_model_exclude_unset=True,
)
def count_item(
    session_id: UUID,
    item_id: UUID,
    payload: CountSubmitRequest,
    actor: str = Depends(require_actor),
    db=Depends(get_db),
):
    item = CountRecorder(db).count_item(session_id, item_id, payload.quantity, actor, notes=payload.notes)
    return _item_line(item, blind=bool(item.session.allow_blind_count))


@router.post(
    f"{_BASE}/{{session_id}}/items/{{item_id}}/verify",
    response_model=CountItemLine,
    responses=_ERROR_RESPONSES,
)
def verify_item(
    session_id: UUID,
    item_id: UUID,
    payload: CountSubmitRequest,
    actor: str = Depends(require_actor),
    db=Depends(get_db),
):
    item = CountRecorder(db).verify_item(session_id, item_id, payload.quantity, actor, notes=payload.notes)
    return _item_line(item)


@router.post(
    f"{_BASE}/{{session_id}}/items/{{item_id}}/reconcile",
    response_model=CountItemLine,
    responses=_ERROR_RESPONSES,
)
def reconcile_item(
    session_id: UUID,
    item_id: UUID,
    payload: ReconcileRequest,
    actor: str = Depends(require_actor),
    db=Depends(get_db),
):
    item = ReconciliationService(db).reconcile_item(
        session_id, item_id, payload.final_quantity, actor, reason=payload.reason
    )
    return _item_line(item)


@router.post(
    f"{_BASE}/{{session_id}}/batch-count",
    response_model=BatchCountResponse,
    responses=_ERROR_RESPONSES,
)
def batch_count(
    session_id: UUID,
    payload: BatchCountRequest,
    actor: str = Depends(require_actor),
    db=Depends(get_db),
):
    rows = [BatchCountRow(sku=row.sku, quantity=row.quantity, location=row.location) for row in payload.rows]
    result = CountRecorder(db).batch_count(session_id, rows, actor)
    return BatchCountResponse(
        success=result.success,
        errors=[BatchCountErrorResponse(**asdict(error)) for error in result.errors],
    )


@router.get(
    f"{_BASE}/{{session_id}}/variance-report",
    response_model=VarianceReportResponse,
    responses=_ERROR_RESPONSES,
)
def variance_report(
    session_id: UUID,
    top_n: int | None = Query(default=None, ge=0),
    db=Depends(get_db),
):
    report = generate_variance_report(db, session_id, top_n=top_n)
    return VarianceReportResponse.model_validate(asdict(report))
