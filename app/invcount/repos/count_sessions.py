from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, case, func, select

from app.invcount.core.statuses import CountType, ItemStatus, SessionStatus
from app.invcount.db.models import CountItem, CountSession


@dataclass(frozen=True)
class CountSessionQueryFilters:
    warehouse_id: str | None = None
    statuses: tuple[SessionStatus, ...] = ()
    count_type: CountType | None = None
    date_from: date | None = None
    date_to: date | None = None


@dataclass(frozen=True)
class SessionRollup:
    total_items: int
    counted_items: int
    discrepancy_count: int
    total_variance_value: Decimal


class CountSessionRepository:
    def __init__(self, db):
        self.db = db

    def get_session(self, session_id: str) -> CountSession | None:
        return self.db.execute(select(CountSession).where(CountSession.id == session_id)).scalars().first()

    def get_item(self, session_id: str, item_id: str) -> CountItem | None:
        return (
            self.db.execute(
                select(CountItem).where(CountItem.id == item_id, CountItem.session_id == session_id)
            )
            .scalars()
            .first()
        )

    def list_sessions(
        self, filters: CountSessionQueryFilters, *, page: int, page_size: int
    ) -> tuple[list[CountSession], int]:
        query = select(CountSession)
        if filters.warehouse_id:
            query = query.where(CountSession.warehouse_id == filters.warehouse_id)
        if filters.statuses:
            query = query.where(CountSession.status.in_(filters.statuses))
        if filters.count_type:
            query = query.where(CountSession.count_type == filters.count_type)
        if filters.date_from:
            query = query.where(CountSession.planned_date >= filters.date_from)
        if filters.date_to:
            query = query.where(CountSession.planned_date <= filters.date_to)

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = (
            self.db.execute(
                query.order_by(CountSession.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total or 0)

    def session_codes(self, prefix: str) -> list[str]:
        return list(
            self.db.execute(select(CountSession.code).where(CountSession.code.startswith(prefix, autoescape=True)))
            .scalars()
            .all()
        )

    def list_items(self, session_id: str) -> list[CountItem]:
        return list(
            self.db.execute(
                select(CountItem)
                .where(CountItem.session_id == session_id)
                .order_by(CountItem.location.asc(), CountItem.sku.asc())
            )
            .scalars()
            .all()
        )

    def list_items_by_status(
        self, session_id: str, status: ItemStatus, *, page: int, page_size: int
    ) -> tuple[list[CountItem], int]:
        condition = and_(CountItem.session_id == session_id, CountItem.status == status)
        total = self.db.execute(select(func.count()).select_from(CountItem).where(condition)).scalar_one()
        rows = (
            self.db.execute(
                select(CountItem)
                .where(condition)
                .order_by(CountItem.location.asc(), CountItem.sku.asc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total or 0)

    def list_discrepancies(self, session_id: str) -> list[CountItem]:
        return list(
            self.db.execute(
                select(CountItem)
                .where(CountItem.session_id == session_id, CountItem.status == ItemStatus.DISCREPANCY)
                .order_by(CountItem.variance_value.desc(), CountItem.sku.asc())
            )
            .scalars()
            .all()
        )

    def find_items_by_sku(self, session_id: str, sku: str, location: str | None = None) -> list[CountItem]:
        query = select(CountItem).where(CountItem.session_id == session_id, CountItem.sku == sku)
        if location:
            query = query.where(CountItem.location == location)
        pending_first = case((CountItem.status == ItemStatus.NOT_COUNTED, 0), else_=1)
        query = query.order_by(pending_first, CountItem.location.asc())
        return list(self.db.execute(query).scalars().all())

    def status_counts(self, session_id: str) -> dict[ItemStatus, int]:
        rows = self.db.execute(
            select(CountItem.status, func.count())
            .where(CountItem.session_id == session_id)
            .group_by(CountItem.status)
        ).all()
        counts = {status: 0 for status in ItemStatus}
        for status, count in rows:
            counts[ItemStatus(status)] = int(count)
        return counts

    def rollup(self, session_id: str) -> SessionRollup:
        counted_expr = func.coalesce(
            func.sum(case((CountItem.status != ItemStatus.NOT_COUNTED, 1), else_=0)), 0
        )
        discrepancy_expr = func.coalesce(
            func.sum(case((and_(CountItem.variance.is_not(None), CountItem.variance != 0), 1), else_=0)), 0
        )
        value_expr = func.coalesce(func.sum(CountItem.variance_value), 0)
        total, counted, discrepancies, value = self.db.execute(
            select(func.count(CountItem.id), counted_expr, discrepancy_expr, value_expr).where(
                CountItem.session_id == session_id
            )
        ).one()
        return SessionRollup(
            total_items=int(total or 0),
            counted_items=int(counted or 0),
            discrepancy_count=int(discrepancies or 0),
            total_variance_value=Decimal(str(value or 0)).quantize(Decimal("0.01")),
        )

    def add_items(self, items: list[CountItem]) -> None:
        self.db.add_all(items)
