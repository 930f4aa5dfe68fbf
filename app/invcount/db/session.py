import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.invcount.core.config import settings
from app.invcount.core.db_timing import add_statement_time, get_query_stats


def _build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=settings.DATABASE_ECHO,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(database_url, echo=settings.DATABASE_ECHO, future=True, pool_pre_ping=True)


engine = _build_engine(settings.DATABASE_URL)


@event.listens_for(engine, "before_cursor_execute")
def _start_statement_timer(conn, cursor, statement, parameters, context, executemany):
    if get_query_stats() is not None:
        conn.info["invcount_statement_start"] = time.perf_counter()


@event.listens_for(engine, "after_cursor_execute")
def _record_statement_time(conn, cursor, statement, parameters, context, executemany):
    start = conn.info.pop("invcount_statement_start", None)
    if start is None or get_query_stats() is None:
        return
    add_statement_time((time.perf_counter() - start) * 1000)


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
