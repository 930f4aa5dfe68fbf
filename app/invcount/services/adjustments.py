from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.invcount.core.catalog import MaterialRef
from app.invcount.core.logging import log_json
from app.invcount.core.metrics import metrics
from app.invcount.db.models import CountItem, CountSession, StockMovement
from app.invcount.repos.stock_ledger import StockLedgerRepository

logger = logging.getLogger(__name__)

ADJUSTMENT_MOVEMENT = "ADJUSTMENT"
SURPLUS = "surplus"
SHORTFALL = "shortfall"


def adjustment_reference(session_code: str) -> str:
    return f"Physical Count: {session_code}"


@dataclass
class AdjustmentSummary:
    adjusted_lines: int = 0
    surplus_lines: int = 0
    shortfall_lines: int = 0
    movements: list[StockMovement] = field(default_factory=list)


class AdjustmentApplier:
    """Rewrites the live ledger to the reconciled counts of a session.

    Nothing is committed here. ``CountSessionService.complete_session`` runs
    this and the COMPLETED status change in one transaction and rolls both
    back together on any failure.
    """

    def __init__(self, db):
        self.db = db
        self.ledger = StockLedgerRepository(db)

    def apply(self, session: CountSession, items: list[CountItem], actor: str) -> AdjustmentSummary:
        summary = AdjustmentSummary()
        reference = adjustment_reference(session.code)
        resync_materials = set()

        for item in items:
            if item.final_quantity is None or not item.variance:
                continue
            ref = item.catalog_ref
            direction = SURPLUS if item.variance > 0 else SHORTFALL

            self.ledger.overwrite_quantity(session.warehouse_id, ref, item.location, item.final_quantity)
            movement = StockMovement(
                warehouse_id=session.warehouse_id,
                catalog_ref=ref,
                location=item.location,
                movement_type=ADJUSTMENT_MOVEMENT,
                direction=direction,
                quantity=abs(item.variance),
                reference=reference,
                notes=f"Physical inventory adjustment ({direction}) - session {session.code}, sku {item.sku}",
                performed_by=actor,
            )
            summary.movements.append(self.ledger.append_movement(movement))
            if isinstance(ref, MaterialRef):
                resync_materials.add(ref.material_id)

            summary.adjusted_lines += 1
            if direction == SURPLUS:
                summary.surplus_lines += 1
            else:
                summary.shortfall_lines += 1

        # currentStock on the material is a cache of its ledger rows
        for material_id in resync_materials:
            self.ledger.set_material_stock(material_id, self.ledger.material_total(material_id))

        log_json(
            logger,
            {
                "event": "inventory_adjustments_staged",
                "session_id": str(session.id),
                "session_code": session.code,
                "actor": actor,
                "adjusted_lines": summary.adjusted_lines,
                "surplus_lines": summary.surplus_lines,
                "shortfall_lines": summary.shortfall_lines,
            },
        )
        return summary

    @staticmethod
    def record_metrics(summary: AdjustmentSummary) -> None:
        if summary.surplus_lines:
            metrics.increment_ledger_adjustment(SURPLUS, summary.surplus_lines)
        if summary.shortfall_lines:
            metrics.increment_ledger_adjustment(SHORTFALL, summary.shortfall_lines)
