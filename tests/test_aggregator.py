from decimal import Decimal

from app.invcount.services.aggregator import SessionAggregator
from app.invcount.services.count_recorder import CountRecorder
from tests.count_helpers import (
    ACTOR,
    create_product,
    create_started_session,
    create_warehouse,
    items_by_sku,
    stock_product,
)


def test_rollups_follow_every_mutation(db_session):
    warehouse = create_warehouse(db_session)
    stock_product(db_session, warehouse, create_product(db_session, sku="A", cost="3.00"), quantity=10)
    stock_product(db_session, warehouse, create_product(db_session, sku="B", cost="1.50"), quantity=10)
    stock_product(db_session, warehouse, create_product(db_session, sku="C", cost="2.00"), quantity=10)
    session = create_started_session(db_session, warehouse)
    items = items_by_sku(db_session, session)
    recorder = CountRecorder(db_session)

    recorder.count_item(session.id, items["A"].id, 12, ACTOR)
    recorder.count_item(session.id, items["B"].id, 6, ACTOR)
    recorder.count_item(session.id, items["C"].id, 10, ACTOR)
    db_session.refresh(session)

    assert session.total_items == 3
    assert session.counted_items == 3
    assert session.discrepancy_count == 2
    assert session.total_variance_value == Decimal("12.00")


def test_refresh_is_idempotent_and_ignores_stale_counters(db_session):
    warehouse = create_warehouse(db_session)
    stock_product(db_session, warehouse, create_product(db_session, sku="A", cost="3.00"), quantity=10)
    session = create_started_session(db_session, warehouse)
    item = items_by_sku(db_session, session)["A"]
    CountRecorder(db_session).count_item(session.id, item.id, 8, ACTOR)

    session.counted_items = 42
    session.discrepancy_count = 42
    aggregator = SessionAggregator(db_session)
    first = aggregator.refresh(session)
    second = aggregator.refresh(session)

    assert first == second
    assert session.counted_items == 1
    assert session.discrepancy_count == 1
    assert session.total_variance_value == Decimal("6.00")
