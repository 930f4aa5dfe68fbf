from decimal import Decimal

import pytest

from app.invcount.core.catalog import CatalogType, CountFilters, CountScope, MaterialRef, ProductRef
from app.invcount.core.error_catalog import AppError, ErrorCatalog
from tests.count_helpers import (
    create_material,
    create_product,
    create_started_session,
    create_variant,
    create_warehouse,
    items_by_sku,
    stock_material,
    stock_product,
)


@pytest.fixture()
def stocked(db_session):
    warehouse = create_warehouse(db_session)
    paint = create_product(db_session, sku="PNT-RED", category="Paints", cost="12.50")
    brush = create_product(db_session, sku="BRS-001", category="Tools", cost="3.00")
    retired = create_product(db_session, sku="PNT-OLD", category="Paints", is_active=False)
    shirt = create_product(db_session, sku="SHIRT", category="Apparel", cost="8.00")
    shirt_blue = create_variant(db_session, shirt, sku="PNT-SHIRT-BLUE", name="Shirt blue")
    resin = create_material(db_session, sku="RES-01", category="Chemicals", cost="4.25")

    stock_product(db_session, warehouse, paint, quantity=20, location="A-01")
    stock_product(db_session, warehouse, brush, quantity=7, location="A-02")
    stock_product(db_session, warehouse, retired, quantity=3, location="A-01")
    stock_product(db_session, warehouse, shirt, quantity=5, location="C-01", variant=shirt_blue)
    stock_material(db_session, warehouse, resin, quantity=40, location="B-01")

    elsewhere = create_warehouse(db_session, code="FAR")
    stock_product(db_session, elsewhere, paint, quantity=99, location="A-01")
    return {"warehouse": warehouse, "paint": paint, "shirt": shirt, "shirt_blue": shirt_blue, "resin": resin}


def test_snapshot_takes_active_rows_of_the_warehouse(db_session, stocked):
    session = create_started_session(db_session, stocked["warehouse"])

    items = items_by_sku(db_session, session)

    assert set(items) == {"PNT-RED", "BRS-001", "PNT-SHIRT-BLUE", "RES-01"}
    assert items["PNT-RED"].expected_quantity == 20
    assert items["PNT-RED"].unit_cost == Decimal("12.50")
    assert items["PNT-RED"].category == "Paints"
    assert items["PNT-RED"].catalog_ref == ProductRef(product_id=stocked["paint"].id)
    assert session.total_items == 4


def test_snapshot_prefers_variant_identity(db_session, stocked):
    session = create_started_session(db_session, stocked["warehouse"])

    line = items_by_sku(db_session, session)["PNT-SHIRT-BLUE"]

    assert line.description == "Shirt blue"
    assert line.catalog_ref == ProductRef(product_id=stocked["shirt"].id, variant_id=stocked["shirt_blue"].id)


def test_snapshot_material_lines(db_session, stocked):
    session = create_started_session(db_session, stocked["warehouse"])

    line = items_by_sku(db_session, session)["RES-01"]

    assert line.catalog_type == CatalogType.MATERIAL
    assert line.catalog_ref == MaterialRef(material_id=stocked["resin"].id)
    assert line.catalog_ref.variant_id is None
    assert line.expected_quantity == 40
    assert line.unit == "kg"


def test_snapshot_category_filter(db_session, stocked):
    session = create_started_session(
        db_session, stocked["warehouse"], filters=CountFilters.build(categories=["Paints", "Chemicals"])
    )

    assert set(items_by_sku(db_session, session)) == {"PNT-RED", "RES-01"}


def test_snapshot_location_filter(db_session, stocked):
    session = create_started_session(
        db_session, stocked["warehouse"], filters=CountFilters.build(locations=["A-02", "C-01"])
    )

    assert set(items_by_sku(db_session, session)) == {"BRS-001", "PNT-SHIRT-BLUE"}


def test_snapshot_sku_prefix_matches_variant_sku(db_session, stocked):
    session = create_started_session(db_session, stocked["warehouse"], filters=CountFilters.build(sku_prefix="PNT"))

    assert set(items_by_sku(db_session, session)) == {"PNT-RED", "PNT-SHIRT-BLUE"}


def test_snapshot_materials_only(db_session, stocked):
    session = create_started_session(
        db_session, stocked["warehouse"], filters=CountFilters.build(scope=CountScope.MATERIALS_ONLY)
    )

    assert set(items_by_sku(db_session, session)) == {"RES-01"}


def test_snapshot_products_only_from_legacy_flag(db_session, stocked):
    filters = CountFilters.build(product_only=True)
    session = create_started_session(db_session, stocked["warehouse"], filters=filters)

    assert filters.scope is CountScope.PRODUCTS_ONLY
    assert "RES-01" not in items_by_sku(db_session, session)


def test_filters_reject_both_only_flags():
    with pytest.raises(AppError) as exc:
        CountFilters.build(material_only=True, product_only=True)
    assert exc.value.error == ErrorCatalog.VALIDATION_ERROR


def test_filters_reject_scope_conflicting_with_flag():
    with pytest.raises(AppError) as exc:
        CountFilters.build(scope=CountScope.PRODUCTS_ONLY, material_only=True)
    assert exc.value.error == ErrorCatalog.VALIDATION_ERROR


def test_filters_round_trip_through_session(db_session, stocked):
    filters = CountFilters.build(categories=[" Paints "], locations=["A-01"], sku_prefix=" PNT ")
    session = create_started_session(db_session, stocked["warehouse"], filters=filters)

    assert session.filters == CountFilters(
        categories=frozenset({"Paints"}),
        locations=frozenset({"A-01"}),
        sku_prefix="PNT",
        scope=CountScope.ALL,
    )
    assert set(items_by_sku(db_session, session)) == {"PNT-RED"}
