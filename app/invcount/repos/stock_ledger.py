from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import aliased

from app.invcount.core.catalog import CountFilters, MaterialRef, ProductRef
from app.invcount.db.models import (
    InventoryItem,
    Material,
    MaterialInventory,
    Product,
    ProductVariant,
    StockMovement,
    Warehouse,
)


class StockLedgerRepository:
    def __init__(self, db):
        self.db = db

    def get_warehouse(self, warehouse_id: str) -> Warehouse | None:
        return self.db.execute(select(Warehouse).where(Warehouse.id == warehouse_id)).scalars().first()

    def product_rows(self, warehouse_id: str, filters: CountFilters) -> list[tuple[InventoryItem, Product, ProductVariant | None]]:
        variant = aliased(ProductVariant)
        query = (
            select(InventoryItem, Product, variant)
            .join(Product, Product.id == InventoryItem.product_id)
            .outerjoin(variant, variant.id == InventoryItem.variant_id)
            .where(InventoryItem.warehouse_id == warehouse_id, Product.is_active.is_(True))
        )
        if filters.categories:
            query = query.where(Product.category.in_(sorted(filters.categories)))
        if filters.locations:
            query = query.where(InventoryItem.location.in_(sorted(filters.locations)))
        if filters.sku_prefix:
            query = query.where(
                or_(
                    Product.sku.startswith(filters.sku_prefix, autoescape=True),
                    variant.sku.startswith(filters.sku_prefix, autoescape=True),
                )
            )
        query = query.order_by(InventoryItem.location.asc(), Product.sku.asc())
        return [tuple(row) for row in self.db.execute(query).all()]

    def material_rows(self, warehouse_id: str, filters: CountFilters) -> list[tuple[MaterialInventory, Material]]:
        query = (
            select(MaterialInventory, Material)
            .join(Material, Material.id == MaterialInventory.material_id)
            .where(MaterialInventory.warehouse_id == warehouse_id, Material.is_active.is_(True))
        )
        if filters.categories:
            query = query.where(Material.category.in_(sorted(filters.categories)))
        if filters.locations:
            query = query.where(MaterialInventory.location.in_(sorted(filters.locations)))
        if filters.sku_prefix:
            query = query.where(Material.sku.startswith(filters.sku_prefix, autoescape=True))
        query = query.order_by(MaterialInventory.location.asc(), Material.sku.asc())
        return [tuple(row) for row in self.db.execute(query).all()]

    def overwrite_quantity(self, warehouse_id, ref, location: str, quantity: int) -> int:
        now = datetime.utcnow()
        if isinstance(ref, MaterialRef):
            statement = (
                update(MaterialInventory)
                .where(
                    MaterialInventory.warehouse_id == warehouse_id,
                    MaterialInventory.material_id == ref.material_id,
                    MaterialInventory.location == location,
                )
                .values(quantity=quantity, updated_at=now)
            )
        elif isinstance(ref, ProductRef):
            variant_clause = (
                InventoryItem.variant_id.is_(None)
                if ref.variant_id is None
                else InventoryItem.variant_id == ref.variant_id
            )
            statement = (
                update(InventoryItem)
                .where(
                    InventoryItem.warehouse_id == warehouse_id,
                    InventoryItem.product_id == ref.product_id,
                    variant_clause,
                    InventoryItem.location == location,
                )
                .values(quantity=quantity, updated_at=now)
            )
        else:
            raise TypeError(f"unsupported catalog reference: {ref!r}")
        result = self.db.execute(statement.execution_options(synchronize_session="fetch"))
        return result.rowcount or 0

    def material_total(self, material_id) -> int:
        total = self.db.execute(
            select(func.coalesce(func.sum(MaterialInventory.quantity), 0)).where(
                MaterialInventory.material_id == material_id
            )
        ).scalar_one()
        return int(total or 0)

    def set_material_stock(self, material_id, current_stock: int) -> None:
        self.db.execute(
            update(Material)
            .where(Material.id == material_id)
            .values(current_stock=current_stock)
            .execution_options(synchronize_session="fetch")
        )

    def append_movement(self, movement: StockMovement) -> StockMovement:
        self.db.add(movement)
        self.db.flush()
        return movement

    def movements_for_reference(self, reference: str) -> list[StockMovement]:
        return list(
            self.db.execute(
                select(StockMovement)
                .where(StockMovement.reference == reference)
                .order_by(StockMovement.created_at.asc())
            )
            .scalars()
            .all()
        )
