from __future__ import annotations

from app.invcount.repos.count_sessions import CountSessionRepository, SessionRollup


class SessionAggregator:
    """Recomputes session rollups from the full current set of items.

    Counters are derived rather than incremented, so concurrent writers that
    both trigger a refresh converge on the same totals.
    """

    def __init__(self, db):
        self.db = db
        self.repo = CountSessionRepository(db)

    def refresh(self, session) -> SessionRollup:
        self.db.flush()
        rollup = self.repo.rollup(str(session.id))
        session.counted_items = rollup.counted_items
        session.discrepancy_count = rollup.discrepancy_count
        session.total_variance_value = rollup.total_variance_value
        return rollup
