from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass


@dataclass
class QueryStats:
    elapsed_ms: float = 0.0
    statements: int = 0


_query_stats: ContextVar[QueryStats | None] = ContextVar("query_stats", default=None)


def start_query_stats() -> object:
    return _query_stats.set(QueryStats())


def stop_query_stats(token: object) -> None:
    _query_stats.reset(token)


def add_statement_time(delta_ms: float) -> None:
    stats = _query_stats.get()
    if stats is None:
        return
    stats.elapsed_ms += delta_ms
    stats.statements += 1


def get_query_stats() -> QueryStats | None:
    return _query_stats.get()
