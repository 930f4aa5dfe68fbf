import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator, CHAR

from app.invcount.core.catalog import CatalogRef, CatalogType, CountFilters, catalog_ref_from_columns
from app.invcount.core.statuses import CountType, ItemStatus, SessionStatus


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


def _enum_column(enum_cls):
    return SAEnum(enum_cls, native_enum=False, length=30, validate_strings=True)


class Base(DeclarativeBase):
    pass


class Warehouse(Base):
    __tablename__ = "warehouses"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    unit: Mapped[str] = mapped_column(String(20), default="pcs", nullable=False)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    variants = relationship("ProductVariant", back_populates="product")


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("products.id"), index=True, nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product", back_populates="variants")


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    unit: Mapped[str] = mapped_column(String(20), default="pcs", nullable=False)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class InventoryItem(Base):
    """Live stock ledger row for a product (or variant) at a warehouse location."""

    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("warehouses.id"), index=True, nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("products.id"), index=True, nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("product_variants.id"), nullable=True)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    product = relationship("Product")
    variant = relationship("ProductVariant")


class MaterialInventory(Base):
    """Live stock ledger row for a material at a warehouse location."""

    __tablename__ = "material_inventory"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("warehouses.id"), index=True, nullable=False)
    material_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("materials.id"), index=True, nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    material = relationship("Material")


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("warehouses.id"), index=True, nullable=False)
    catalog_type: Mapped[CatalogType] = mapped_column(_enum_column(CatalogType), nullable=False)
    catalog_id: Mapped[uuid.UUID] = mapped_column(GUID(), index=True, nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), nullable=True)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    movement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    performed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def catalog_ref(self) -> CatalogRef:
        return catalog_ref_from_columns(self.catalog_type, self.catalog_id, self.variant_id)

    @catalog_ref.setter
    def catalog_ref(self, ref: CatalogRef) -> None:
        self.catalog_type = ref.catalog_type
        self.catalog_id = ref.catalog_id
        self.variant_id = ref.variant_id


class CountSession(Base):
    __tablename__ = "count_sessions"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("warehouses.id"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    count_type: Mapped[CountType] = mapped_column(_enum_column(CountType), default=CountType.FULL, nullable=False)
    planned_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    require_double_count: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    freeze_inventory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    allow_blind_count: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    filters_payload: Mapped[dict | None] = mapped_column("filters", JSON, nullable=True)
    status: Mapped[SessionStatus] = mapped_column(
        _enum_column(SessionStatus), default=SessionStatus.DRAFT, index=True, nullable=False
    )
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    counted_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discrepancy_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_variance_value: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    started_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, onupdate=datetime.utcnow)

    warehouse = relationship("Warehouse")
    items = relationship("CountItem", back_populates="session", order_by="CountItem.location")

    @property
    def filters(self) -> CountFilters:
        return CountFilters.from_json(self.filters_payload)

    @filters.setter
    def filters(self, value: CountFilters) -> None:
        self.filters_payload = value.to_json()


class CountItem(Base):
    __tablename__ = "count_items"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("count_sessions.id"), index=True, nullable=False)
    catalog_type: Mapped[CatalogType] = mapped_column(_enum_column(CatalogType), nullable=False)
    catalog_id: Mapped[uuid.UUID] = mapped_column(GUID(), index=True, nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), nullable=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    expected_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    counted_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    counted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    counted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    verified_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reconciled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    final_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    variance: Mapped[int | None] = mapped_column(Integer, nullable=True)
    variance_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    status: Mapped[ItemStatus] = mapped_column(_enum_column(ItemStatus), default=ItemStatus.NOT_COUNTED, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, onupdate=datetime.utcnow)

    session = relationship("CountSession", back_populates="items")

    __table_args__ = (
        Index("ix_count_items_session_sku", "session_id", "sku"),
        Index("ix_count_items_session_status", "session_id", "status"),
    )

    @property
    def catalog_ref(self) -> CatalogRef:
        return catalog_ref_from_columns(self.catalog_type, self.catalog_id, self.variant_id)

    @catalog_ref.setter
    def catalog_ref(self, ref: CatalogRef) -> None:
        self.catalog_type = ref.catalog_type
        self.catalog_id = ref.catalog_id
        self.variant_id = ref.variant_id


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    actor: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    trace_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    result: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


Index("ix_inventory_items_lookup", InventoryItem.warehouse_id, InventoryItem.product_id, InventoryItem.location)
Index("ix_material_inventory_lookup", MaterialInventory.warehouse_id, MaterialInventory.material_id, MaterialInventory.location)
