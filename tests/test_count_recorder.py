import uuid
from decimal import Decimal

import pytest

from app.invcount.core.error_catalog import AppError, ErrorCatalog
from app.invcount.core.statuses import ItemStatus
from app.invcount.repos.count_sessions import CountSessionRepository
from app.invcount.services.count_recorder import BatchCountRow, CountRecorder
from app.invcount.services.count_sessions import CountSessionService
from app.invcount.services import count_recorder as count_recorder_module
from tests.count_helpers import (
    ACTOR,
    create_product,
    create_session,
    create_started_session,
    create_warehouse,
    items_by_sku,
    stock_product,
)


def _single_line_session(db_session, *, expected: int, cost: str = "2.00", **kwargs):
    warehouse = create_warehouse(db_session)
    product = create_product(db_session, sku="SKU-1", cost=cost)
    stock_product(db_session, warehouse, product, quantity=expected)
    session = create_started_session(db_session, warehouse, **kwargs)
    return session, items_by_sku(db_session, session)["SKU-1"]


def test_count_matching_expected_reconciles(db_session):
    session, item = _single_line_session(db_session, expected=100)

    counted = CountRecorder(db_session).count_item(session.id, item.id, 100, ACTOR, notes="shelf 3")

    assert counted.status == ItemStatus.RECONCILED
    assert counted.counted_quantity == 100
    assert counted.counted_by == ACTOR
    assert counted.counted_at is not None
    assert counted.final_quantity == 100
    assert counted.variance == 0
    assert counted.variance_value == Decimal("0.00")
    assert counted.notes == "Count: shelf 3"


def test_count_with_difference_is_discrepancy(db_session):
    session, item = _single_line_session(db_session, expected=100, cost="2.00")

    counted = CountRecorder(db_session).count_item(session.id, item.id, 95, ACTOR)

    assert counted.status == ItemStatus.DISCREPANCY
    assert counted.final_quantity == 95
    assert counted.variance == -5
    assert counted.variance_value == Decimal("10.00")
    db_session.refresh(session)
    assert session.counted_items == 1
    assert session.discrepancy_count == 1
    assert session.total_variance_value == Decimal("10.00")


def test_count_twice_is_a_conflict(db_session):
    session, item = _single_line_session(db_session, expected=10)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, item.id, 10, ACTOR)

    with pytest.raises(AppError) as exc:
        recorder.count_item(session.id, item.id, 11, ACTOR)
    assert exc.value.error == ErrorCatalog.ITEM_ALREADY_COUNTED
    assert exc.value.details["status"] == "RECONCILED"


@pytest.mark.parametrize("quantity", [-1, 2.5, True, "7"])
def test_count_rejects_invalid_quantities(db_session, quantity):
    session, item = _single_line_session(db_session, expected=10)

    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).count_item(session.id, item.id, quantity, ACTOR)
    assert exc.value.error == ErrorCatalog.VALIDATION_ERROR
    db_session.refresh(item)
    assert item.status == ItemStatus.NOT_COUNTED


def test_count_requires_in_progress_session(db_session):
    warehouse = create_warehouse(db_session)
    stock_product(db_session, warehouse, create_product(db_session, sku="SKU-1"), quantity=3)
    session = create_started_session(db_session, warehouse)
    item = items_by_sku(db_session, session)["SKU-1"]
    CountRecorder(db_session).count_item(session.id, item.id, 3, ACTOR)
    CountSessionService(db_session).submit_for_review(session.id)

    other = create_session(db_session, warehouse)
    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).count_item(other.id, item.id, 3, ACTOR)
    assert exc.value.error == ErrorCatalog.INVALID_STATE_TRANSITION
    assert exc.value.details["status"] == "DRAFT"


def test_count_unknown_item(db_session):
    session, _item = _single_line_session(db_session, expected=10)

    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).count_item(session.id, uuid.uuid4(), 10, ACTOR)
    assert exc.value.error == ErrorCatalog.ITEM_NOT_FOUND


def test_double_count_agreeing_with_expected_is_verified(db_session):
    session, item = _single_line_session(db_session, expected=50, require_double_count=True)
    recorder = CountRecorder(db_session)

    counted = recorder.count_item(session.id, item.id, 50, ACTOR)
    assert counted.status == ItemStatus.COUNTED
    assert counted.final_quantity is None
    assert counted.variance is None

    verified = recorder.verify_item(session.id, item.id, 50, "checker", notes="recounted")
    assert verified.status == ItemStatus.VERIFIED
    assert verified.verified_quantity == 50
    assert verified.verified_by == "checker"
    assert verified.final_quantity == 50
    assert verified.variance == 0
    assert verified.notes == "Verification: recounted"


def test_double_count_agreeing_counts_with_variance(db_session):
    session, item = _single_line_session(db_session, expected=50, require_double_count=True)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, item.id, 47, ACTOR)

    verified = recorder.verify_item(session.id, item.id, 47, "checker")

    assert verified.status == ItemStatus.DISCREPANCY
    assert verified.final_quantity == 47
    assert verified.variance == -3


def test_double_count_disagreeing_counts_leave_final_unset(db_session):
    session, item = _single_line_session(db_session, expected=50, require_double_count=True)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, item.id, 50, ACTOR)

    verified = recorder.verify_item(session.id, item.id, 48, "checker")

    assert verified.status == ItemStatus.DISCREPANCY
    assert verified.final_quantity is None
    assert verified.variance is None
    assert verified.variance_value is None
    db_session.refresh(session)
    assert session.discrepancy_count == 0


def test_verify_without_double_count_is_rejected(db_session):
    session, item = _single_line_session(db_session, expected=5)

    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).verify_item(session.id, item.id, 5, ACTOR)
    assert exc.value.error == ErrorCatalog.INVALID_STATE_TRANSITION


def test_verify_unknown_item_is_not_found_before_mode_check(db_session):
    session, _item = _single_line_session(db_session, expected=5)

    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).verify_item(session.id, uuid.uuid4(), 5, ACTOR)
    assert exc.value.error == ErrorCatalog.ITEM_NOT_FOUND


def test_verify_before_count_is_rejected(db_session):
    session, item = _single_line_session(db_session, expected=5, require_double_count=True)

    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).verify_item(session.id, item.id, 5, ACTOR)
    assert exc.value.error == ErrorCatalog.INVALID_STATE_TRANSITION
    assert exc.value.details["status"] == "NOT_COUNTED"


def test_verify_twice_is_a_conflict(db_session):
    session, item = _single_line_session(db_session, expected=5, require_double_count=True)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, item.id, 5, ACTOR)
    recorder.verify_item(session.id, item.id, 5, "checker")

    with pytest.raises(AppError) as exc:
        recorder.verify_item(session.id, item.id, 5, "checker")
    assert exc.value.error == ErrorCatalog.ITEM_ALREADY_VERIFIED


def test_verify_allowed_while_pending_review(db_session):
    session, item = _single_line_session(db_session, expected=5, require_double_count=True)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, item.id, 5, ACTOR)
    CountSessionService(db_session).submit_for_review(session.id)

    verified = recorder.verify_item(session.id, item.id, 5, "checker")

    assert verified.status == ItemStatus.VERIFIED


def _batch_session(db_session):
    warehouse = create_warehouse(db_session)
    stock_product(db_session, warehouse, create_product(db_session, sku="SKU-1"), quantity=10, location="A-01")
    stock_product(db_session, warehouse, create_product(db_session, sku="SKU-2"), quantity=6, location="A-01")
    multi = create_product(db_session, sku="SKU-M")
    stock_product(db_session, warehouse, multi, quantity=2, location="A-01")
    stock_product(db_session, warehouse, multi, quantity=3, location="B-01")
    return create_started_session(db_session, warehouse)


def test_batch_count_reports_unknown_sku_without_raising(db_session):
    session = _batch_session(db_session)

    result = CountRecorder(db_session).batch_count(
        session.id,
        [BatchCountRow(sku="SKU-1", quantity=10), BatchCountRow(sku="UNKNOWN", quantity=1)],
        ACTOR,
    )

    assert result.success == 1
    assert len(result.errors) == 1
    assert result.errors[0].sku == "UNKNOWN"
    assert result.errors[0].code == "SKU_NOT_IN_SESSION"
    assert result.errors[0].error
    db_session.refresh(session)
    assert session.counted_items == 1


def test_batch_count_collects_per_row_failures(db_session):
    session = _batch_session(db_session)

    result = CountRecorder(db_session).batch_count(
        session.id,
        [
            BatchCountRow(sku="SKU-1", quantity=10),
            BatchCountRow(sku="SKU-1", quantity=9),
            BatchCountRow(sku="SKU-2", quantity=-4),
            BatchCountRow(sku="SKU-2", quantity=5),
        ],
        ACTOR,
    )

    assert result.success == 2
    assert [(error.sku, error.code) for error in result.errors] == [
        ("SKU-1", "ITEM_ALREADY_COUNTED"),
        ("SKU-2", "VALIDATION_ERROR"),
    ]
    assert "cannot be negative" in result.errors[1].error
    items = items_by_sku(db_session, session)
    assert items["SKU-1"].counted_quantity == 10
    assert items["SKU-2"].status == ItemStatus.DISCREPANCY


def test_batch_count_prefers_uncounted_line_and_honours_location(db_session):
    session = _batch_session(db_session)
    recorder = CountRecorder(db_session)

    first = recorder.batch_count(session.id, [BatchCountRow(sku="SKU-M", quantity=3, location="B-01")], ACTOR)
    second = recorder.batch_count(session.id, [BatchCountRow(sku="SKU-M", quantity=2)], ACTOR)

    assert first.success == 1
    assert second.success == 1
    lines = CountSessionRepository(db_session).find_items_by_sku(str(session.id), "SKU-M")
    by_location = {line.location: line for line in lines}
    assert by_location["A-01"].counted_quantity == 2
    assert by_location["B-01"].counted_quantity == 3
    assert all(line.status == ItemStatus.RECONCILED for line in lines)


def test_batch_count_requires_in_progress_session(db_session):
    warehouse = create_warehouse(db_session)
    session = create_session(db_session, warehouse)

    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).batch_count(session.id, [BatchCountRow(sku="SKU-1", quantity=1)], ACTOR)
    assert exc.value.error == ErrorCatalog.INVALID_STATE_TRANSITION


def test_batch_count_row_limit(db_session, monkeypatch):
    session = _batch_session(db_session)
    monkeypatch.setattr(count_recorder_module.settings, "BATCH_COUNT_MAX_ROWS", 1)

    with pytest.raises(AppError) as exc:
        CountRecorder(db_session).batch_count(
            session.id,
            [BatchCountRow(sku="SKU-1", quantity=1), BatchCountRow(sku="SKU-2", quantity=1)],
            ACTOR,
        )
    assert exc.value.error == ErrorCatalog.VALIDATION_ERROR


def test_blind_listing_hides_expected_quantity(db_session):
    session = _batch_session(db_session)

    page = CountRecorder(db_session).list_items_to_count(session.id)

    assert page.blind is True
    assert page.total == 4
    assert [(item["location"], item["sku"]) for item in page.items] == [
        ("A-01", "SKU-1"),
        ("A-01", "SKU-2"),
        ("A-01", "SKU-M"),
        ("B-01", "SKU-M"),
    ]
    assert all("expected_quantity" not in item for item in page.items)


def test_open_listing_shows_expected_quantity_and_paginates(db_session):
    warehouse = create_warehouse(db_session)
    for index in range(5):
        stock_product(db_session, warehouse, create_product(db_session, sku=f"SKU-{index}"), quantity=index)
    session = create_started_session(db_session, warehouse, allow_blind_count=False)
    recorder = CountRecorder(db_session)
    recorder.count_item(session.id, items_by_sku(db_session, session)["SKU-0"].id, 0, ACTOR)

    page = recorder.list_items_to_count(session.id, page=2, page_size=3)

    assert page.blind is False
    assert page.total == 4
    assert page.total_pages == 2
    assert [item["sku"] for item in page.items] == ["SKU-4"]
    assert page.items[0]["expected_quantity"] == 4
