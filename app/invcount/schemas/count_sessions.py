from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.invcount.core.catalog import CountScope
from app.invcount.core.statuses import CountType, SessionStatus


_CREATE_EXAMPLE = {
    "warehouse_id": "7f7a9d0e-3c9e-4d8e-9a55-0c1b5f0e2a11",
    "name": "Year-end count",
    "count_type": "FULL",
    "planned_date": "2026-12-31",
    "require_double_count": False,
    "allow_blind_count": True,
    "filters": {"categories": ["Paints"], "locations": ["A-01"], "sku_prefix": "PNT", "scope": "ALL"},
}


class CountFiltersPayload(BaseModel):
    categories: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    sku_prefix: str | None = None
    scope: CountScope | None = None
    material_only: bool = False
    product_only: bool = False


class CountFiltersResponse(BaseModel):
    categories: list[str]
    locations: list[str]
    sku_prefix: str | None
    scope: CountScope


class CountSessionCreateRequest(BaseModel):
    warehouse_id: UUID
    name: str
    description: str | None = None
    count_type: CountType = CountType.FULL
    planned_date: date | None = None
    require_double_count: bool = False
    freeze_inventory: bool = False
    allow_blind_count: bool | None = None
    filters: CountFiltersPayload | None = None

    model_config = {"json_schema_extra": {"example": _CREATE_EXAMPLE}}


class CountSessionUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    count_type: CountType | None = None
    planned_date: date | None = None
    require_double_count: bool | None = None
    freeze_inventory: bool | None = None
    allow_blind_count: bool | None = None
    filters: CountFiltersPayload | None = None


class CountSessionActionRequest(BaseModel):
    action: Literal["START", "SUBMIT_FOR_REVIEW", "COMPLETE", "CANCEL"]
    reason: str | None = None
    apply_adjustments: bool = True


class CountSessionResponse(BaseModel):
    id: str
    code: str
    warehouse_id: str
    name: str
    description: str | None
    count_type: CountType
    planned_date: date | None
    require_double_count: bool
    freeze_inventory: bool
    allow_blind_count: bool
    filters: CountFiltersResponse
    status: SessionStatus
    total_items: int
    counted_items: int
    discrepancy_count: int
    total_variance_value: float
    notes: str | None
    created_by: str
    created_at: datetime
    started_by: str | None
    started_at: datetime | None
    completed_by: str | None
    completed_at: datetime | None
    cancelled_by: str | None
    cancelled_at: datetime | None
    updated_at: datetime | None


class CountItemLine(BaseModel):
    """A count line as returned to counters.

    ``expected_quantity`` is left unset for lines of a blind session that are
    still waiting to be counted or verified, and the field is then omitted from
    the JSON. ``counted_quantity`` is likewise left unset while a blind line
    waits for its second count.
    """

    id: str
    session_id: str
    catalog_type: str
    catalog_id: str
    variant_id: str | None
    sku: str
    description: str | None
    unit: str | None
    category: str | None
    location: str
    expected_quantity: int | None = None
    unit_cost: float | None
    counted_quantity: int | None = None
    counted_by: str | None
    counted_at: datetime | None
    verified_quantity: int | None
    verified_by: str | None
    verified_at: datetime | None
    reconciled_by: str | None
    reconciled_at: datetime | None
    final_quantity: int | None
    variance: int | None
    variance_value: float | None
    status: str
    notes: str | None


class CountSessionStats(BaseModel):
    total_items: int
    counted_items: int
    verified_items: int
    discrepancy_items: int
    progress: int


class CountSessionDetailResponse(CountSessionResponse):
    stats: CountSessionStats
    items: list[CountItemLine]


class CountSessionListResponse(BaseModel):
    rows: list[CountSessionResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AdjustmentSummaryResponse(BaseModel):
    adjusted_lines: int
    surplus_lines: int
    shortfall_lines: int
    reference: str


class CountSessionActionResponse(BaseModel):
    session: CountSessionResponse
    adjustments: AdjustmentSummaryResponse | None = None


class CountItemsPageResponse(BaseModel):
    rows: list[CountItemLine]
    total: int
    page: int
    page_size: int
    total_pages: int
    blind: bool


class CountSubmitRequest(BaseModel):
    quantity: int
    notes: str | None = None


class ReconcileRequest(BaseModel):
    final_quantity: int
    reason: str | None = None


class BatchCountRowPayload(BaseModel):
    sku: str
    quantity: int
    location: str | None = None


class BatchCountRequest(BaseModel):
    rows: list[BatchCountRowPayload]


class BatchCountErrorResponse(BaseModel):
    sku: str
    error: str
    code: str | None = None


class BatchCountResponse(BaseModel):
    success: int
    errors: list[BatchCountErrorResponse]


class VarianceBucketResponse(BaseModel):
    count: int
    units: int
    value: float


class NetVarianceResponse(BaseModel):
    units: int
    value: float


class CategoryVarianceResponse(BaseModel):
    variance: int
    value: float


class VarianceLineResponse(BaseModel):
    item_id: str
    sku: str
    description: str | None
    location: str
    expected_quantity: int
    final_quantity: int
    variance: int
    variance_value: float


class VarianceReportResponse(BaseModel):
    session_id: str
    session_code: str
    status: SessionStatus
    total_items: int
    counted_items: int
    items_with_variance: int
    positive_variance: VarianceBucketResponse
    negative_variance: VarianceBucketResponse
    net_variance: NetVarianceResponse
    by_category: dict[str, CategoryVarianceResponse]
    top_variances: list[VarianceLineResponse]
