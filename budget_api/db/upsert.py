from __future__ import annotations

from typing import Any

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def insert_in_savepoint(db: Session, model: type, values: dict[str, Any]) -> int | None:
    """Plain INSERT guarded by a SAVEPOINT; a unique violation yields None."""
    try:
        with db.begin_nested():
            res = db.execute(insert(model).values(**values))
    except IntegrityError:
        return None
    return res.inserted_primary_key[0]


def insert_or_ignore(db: Session, model: type, values: dict[str, Any], *, conflict_columns: list[str]) -> int | None:
    """INSERT ... ON CONFLICT DO NOTHING; returns the new primary key, or None on conflict."""
    conflict_insert = _CONFLICT_INSERTS.get(db.get_bind().dialect.name)
    if conflict_insert is None:
        return insert_in_savepoint(db, model, values)
    stmt = conflict_insert(model).values(**values).on_conflict_do_nothing(index_elements=conflict_columns).returning(model.id)
    return db.execute(stmt).scalar_one_or_none()
