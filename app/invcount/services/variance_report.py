from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from app.invcount.core.config import settings
from app.invcount.core.error_catalog import AppError, ErrorCatalog
from app.invcount.core.statuses import SessionStatus
from app.invcount.repos.count_sessions import CountSessionRepository

UNCATEGORIZED = "Uncategorized"
_ZERO = Decimal("0.00")


@dataclass
class VarianceBucket:
    count: int = 0
    units: int = 0
    value: Decimal = _ZERO


@dataclass
class NetVariance:
    units: int = 0
    value: Decimal = _ZERO


@dataclass
class CategoryVariance:
    variance: int = 0
    value: Decimal = _ZERO


@dataclass
class VarianceLine:
    item_id: str
    sku: str
    description: str | None
    location: str
    expected_quantity: int
    final_quantity: int
    variance: int
    variance_value: Decimal


@dataclass
class VarianceReport:
    session_id: str
    session_code: str
    status: str
    total_items: int
    counted_items: int
    items_with_variance: int
    positive_variance: VarianceBucket
    negative_variance: VarianceBucket
    net_variance: NetVariance
    by_category: dict[str, CategoryVariance] = field(default_factory=dict)
    top_variances: list[VarianceLine] = field(default_factory=list)


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(Decimal("0.01"))


def generate_variance_report(db, session_id: str, *, top_n: int | None = None) -> VarianceReport:
    """Summarise the variance of a session at whatever status it is in.

    Only lines with a final quantity are considered counted. The negative
    bucket reports units and value as positive magnitudes; the net value is
    signed.
    """
    repo = CountSessionRepository(db)
    session = repo.get_session(session_id)
    if session is None:
        raise AppError(ErrorCatalog.SESSION_NOT_FOUND, details={"session_id": str(session_id)})

    items = repo.list_items(session_id)
    counted = [item for item in items if item.final_quantity is not None]
    with_variance = [item for item in counted if item.variance]

    positive = VarianceBucket()
    negative = VarianceBucket()
    net = NetVariance()
    by_category: dict[str, CategoryVariance] = defaultdict(CategoryVariance)

    for item in with_variance:
        value = _money(item.variance_value)
        if item.variance > 0:
            positive.count += 1
            positive.units += item.variance
            positive.value += value
            net.value += value
        else:
            negative.count += 1
            negative.units += abs(item.variance)
            negative.value += value
            net.value -= value
        net.units += item.variance

        bucket = by_category[item.category or UNCATEGORIZED]
        bucket.variance += item.variance
        bucket.value += value

    limit = settings.VARIANCE_REPORT_TOP_N if top_n is None else top_n
    ranked = sorted(with_variance, key=lambda item: (-_money(item.variance_value), item.sku))[:limit]
    top_variances = [
        VarianceLine(
            item_id=str(item.id),
            sku=item.sku,
            description=item.description,
            location=item.location,
            expected_quantity=item.expected_quantity,
            final_quantity=item.final_quantity,
            variance=item.variance,
            variance_value=_money(item.variance_value),
        )
        for item in ranked
    ]

    return VarianceReport(
        session_id=str(session.id),
        session_code=session.code,
        status=SessionStatus(session.status).value,
        total_items=len(items),
        counted_items=len(counted),
        items_with_variance=len(with_variance),
        positive_variance=positive,
        negative_variance=negative,
        net_variance=net,
        by_category=dict(by_category),
        top_variances=top_variances,
    )
