from __future__ import annotations

import os

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./inventario.db")


def make_engine(url: str, **kwargs) -> Engine:
    """Crea el engine; en SQLite activa las claves foráneas por conexión."""
    connect_args: dict = dict(kwargs.pop("connect_args", {}) or {})
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args.setdefault("check_same_thread", False)

    eng = create_engine(
        url,
        connect_args=connect_args,
        pool_pre_ping=True,
        **kwargs,
    )

    if is_sqlite:

        @event.listens_for(eng, "connect")
        def _sqlite_fk_pragma(dbapi_conn, _record) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


def get_session() -> Session:
    return SessionLocal()
