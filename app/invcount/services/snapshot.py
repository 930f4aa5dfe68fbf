from __future__ import annotations

import logging
from decimal import Decimal

from app.invcount.core.catalog import MaterialRef, ProductRef
from app.invcount.core.logging import log_json
from app.invcount.core.statuses import ItemStatus
from app.invcount.db.models import CountItem, CountSession
from app.invcount.repos.count_sessions import CountSessionRepository
from app.invcount.repos.stock_ledger import StockLedgerRepository

logger = logging.getLogger(__name__)


def _cost(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(value)


class SnapshotBuilder:
    """Freezes the live ledger into count lines for a session that is starting.

    Only called on the DRAFT -> IN_PROGRESS transition; the caller owns the
    transaction so the lines and the status change commit together.
    """

    def __init__(self, db):
        self.db = db
        self.ledger = StockLedgerRepository(db)
        self.sessions = CountSessionRepository(db)

    def build(self, session: CountSession) -> list[CountItem]:
        filters = session.filters
        items: list[CountItem] = []

        if filters.includes_products:
            for ledger_row, product, variant in self.ledger.product_rows(str(session.warehouse_id), filters):
                items.append(
                    CountItem(
                        session_id=session.id,
                        catalog_ref=ProductRef(product_id=product.id, variant_id=ledger_row.variant_id),
                        sku=variant.sku if variant is not None else product.sku,
                        description=variant.name if variant is not None else product.name,
                        unit=product.unit,
                        category=product.category,
                        location=ledger_row.location,
                        expected_quantity=ledger_row.quantity,
                        unit_cost=_cost(product.cost),
                        status=ItemStatus.NOT_COUNTED,
                    )
                )

        if filters.includes_materials:
            for ledger_row, material in self.ledger.material_rows(str(session.warehouse_id), filters):
                items.append(
                    CountItem(
                        session_id=session.id,
                        catalog_ref=MaterialRef(material_id=material.id),
                        sku=material.sku,
                        description=material.name,
                        unit=material.unit,
                        category=material.category,
                        location=ledger_row.location,
                        expected_quantity=ledger_row.quantity,
                        unit_cost=_cost(material.cost),
                        status=ItemStatus.NOT_COUNTED,
                    )
                )

        self.sessions.add_items(items)
        log_json(
            logger,
            {
                "event": "count_snapshot_built",
                "session_id": str(session.id),
                "warehouse_id": str(session.warehouse_id),
                "items": len(items),
                "filters": filters.to_json(),
            },
        )
        return items
