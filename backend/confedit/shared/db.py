from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy import DateTime, TypeDecorator, create_engine, event
from .config import settings


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC (SQLite drops tzinfo on the way in)."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _sqlite_foreign_keys(dbapi_conn, _record):
    # SQLite ignores ON DELETE CASCADE / SET NULL unless asked per connection
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def make_engine(url: str, connect_args: dict | None = None, **kw):
    sqlite = url.startswith("sqlite")
    args = {"check_same_thread": False} if sqlite else {}
    args.update(connect_args or {})
    eng = create_engine(url, echo=False, future=True, connect_args=args, **kw)
    if sqlite:
        event.listen(eng, "connect", _sqlite_foreign_keys)
    return eng


DB_URL = settings.DATABASE_URL
if DB_URL.startswith("sqlite:///") and ":memory:" not in DB_URL:
    from pathlib import Path

    Path(DB_URL.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
engine = make_engine(DB_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
