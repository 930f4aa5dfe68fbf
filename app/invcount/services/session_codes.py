from __future__ import annotations

from datetime import datetime

from app.invcount.core.config import settings
from app.invcount.repos.count_sessions import CountSessionRepository


def session_code_prefix(warehouse_code: str, year: int) -> str:
    return f"{settings.SESSION_CODE_PREFIX}-{warehouse_code}-{year}"


def _sequence_of(code: str, prefix: str) -> int | None:
    suffix = code[len(prefix) + 1 :]
    if not suffix.isdigit():
        return None
    return int(suffix)


def next_session_code(db, warehouse_code: str, *, now: datetime | None = None) -> str:
    """Return the next code for ``warehouse_code`` in the current year.

    The sequence continues from the highest numeric suffix already issued for
    the prefix, so gaps left by deleted rows are never reused and codes keep
    increasing past 999.
    """
    year = (now or datetime.utcnow()).year
    prefix = session_code_prefix(warehouse_code, year)
    sequences = [
        sequence
        for sequence in (_sequence_of(code, prefix) for code in CountSessionRepository(db).session_codes(f"{prefix}-"))
        if sequence is not None
    ]
    next_sequence = max(sequences, default=0) + 1
    return f"{prefix}-{next_sequence:03d}"
