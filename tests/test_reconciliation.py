from decimal import Decimal

import pytest

from app.invcount.core.error_catalog import AppError, ErrorCatalog
from app.invcount.core.statuses import ItemStatus
from app.invcount.services.count_recorder import CountRecorder
from app.invcount.services.count_sessions import CountSessionService
from app.invcount.services.reconciliation import ReconciliationService
from tests.count_helpers import (
    ACTOR,
    create_product,
    create_started_session,
    create_warehouse,
    items_by_sku,
    stock_product,
)


def _session_with_lines(db_session, *, require_double_count: bool = False):
    warehouse = create_warehouse(db_session)
    stock_product(db_session, warehouse, create_product(db_session, sku="CHEAP", cost="1.00"), quantity=100)
    stock_product(db_session, warehouse, create_product(db_session, sku="PRICEY", cost="50.00"), quantity=10)
    stock_product(db_session, warehouse, create_product(db_session, sku="EXACT", cost="5.00"), quantity=4)
    session = create_started_session(db_session, warehouse, require_double_count=require_double_count)
    return session, items_by_sku(db_session, session)


def test_reconcile_settles_discrepancy(db_session):
    session, items = _session_with_lines(db_session)
    CountRecorder(db_session).count_item(session.id, items["CHEAP"].id, 95, ACTOR)

    item = ReconciliationService(db_session).reconcile_item(
        session.id, items["CHEAP"].id, 95, "supervisor", reason="confirmed shrinkage"
    )

    assert item.status == ItemStatus.RECONCILED
    assert item.final_quantity == 95
    assert item.variance == -5
    assert item.variance_value == Decimal("5.00")
    assert item.notes == "Reconciliation: confirmed shrinkage"
    assert item.reconciled_by == "supervisor"
    assert item.reconciled_at is not None


def test_reconcile_may_pick_a_third_value_and_repeat(db_session):
    session, items = _session_with_lines(db_session, require_double_count=True)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, items["PRICEY"].id, 10, ACTOR)
    recorder.verify_item(session.id, items["PRICEY"].id, 8, "checker")
    service = ReconciliationService(db_session)

    first = service.reconcile_item(session.id, items["PRICEY"].id, 9, "supervisor", reason="third count")
    assert first.final_quantity == 9
    assert first.variance == -1
    assert first.variance_value == Decimal("50.00")

    second = service.reconcile_item(session.id, items["PRICEY"].id, 12, "auditor", reason="found a box")
    assert second.status == ItemStatus.RECONCILED
    assert second.final_quantity == 12
    assert second.variance == 2
    assert second.variance_value == Decimal("100.00")
    assert second.notes == "Reconciliation: third count\nReconciliation: found a box"
    assert second.reconciled_by == "auditor"
    db_session.refresh(session)
    assert session.total_variance_value == Decimal("100.00")


@pytest.mark.parametrize("status_setup", ["not_counted", "counted", "verified"])
def test_reconcile_rejected_outside_discrepancy(db_session, status_setup):
    session, items = _session_with_lines(db_session, require_double_count=True)
    recorder = CountRecorder(db_session)
    item_id = items["EXACT"].id
    if status_setup in ("counted", "verified"):
        recorder.count_item(session.id, item_id, 4, ACTOR)
    if status_setup == "verified":
        recorder.verify_item(session.id, item_id, 4, "checker")

    with pytest.raises(AppError) as exc:
        ReconciliationService(db_session).reconcile_item(session.id, item_id, 4, "supervisor")
    assert exc.value.error == ErrorCatalog.INVALID_STATE_TRANSITION


def test_reconcile_rejects_negative_quantity(db_session):
    session, items = _session_with_lines(db_session)
    CountRecorder(db_session).count_item(session.id, items["CHEAP"].id, 90, ACTOR)

    with pytest.raises(AppError) as exc:
        ReconciliationService(db_session).reconcile_item(session.id, items["CHEAP"].id, -1, "supervisor")
    assert exc.value.error == ErrorCatalog.VALIDATION_ERROR


def test_reconcile_rejected_after_completion(db_session):
    session, items = _session_with_lines(db_session)
    recorder = CountRecorder(db_session)
    for item in items.values():
        recorder.count_item(session.id, item.id, item.expected_quantity, ACTOR)
    CountSessionService(db_session).complete_session(session.id, ACTOR)

    with pytest.raises(AppError) as exc:
        ReconciliationService(db_session).reconcile_item(session.id, items["CHEAP"].id, 1, "supervisor")
    assert exc.value.error == ErrorCatalog.INVALID_STATE_TRANSITION
    assert exc.value.details["status"] == "COMPLETED"


def test_list_discrepancies_orders_by_value(db_session):
    session, items = _session_with_lines(db_session)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, items["CHEAP"].id, 90, ACTOR)
    recorder.count_item(session.id, items["PRICEY"].id, 9, ACTOR)
    recorder.count_item(session.id, items["EXACT"].id, 4, ACTOR)

    discrepancies = ReconciliationService(db_session).list_discrepancies(session.id)

    assert [item.sku for item in discrepancies] == ["PRICEY", "CHEAP"]
    assert [item.variance_value for item in discrepancies] == [Decimal("50.00"), Decimal("10.00")]
