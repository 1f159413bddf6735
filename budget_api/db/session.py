from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from budget_api.config import settings


def _serialize_sqlite_writers(engine: Engine) -> None:
    # pysqlite defers BEGIN and breaks SAVEPOINT; take the write lock at BEGIN.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str | None = None, **kwargs) -> Engine:
    url = database_url or settings.database_url
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    engine = create_engine(url, echo=False, future=True, connect_args=connect_args, **kwargs)
    if engine.dialect.name == "sqlite":
        _serialize_sqlite_writers(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


ENGINE = create_db_engine()
SessionLocal = create_session_factory(ENGINE)
