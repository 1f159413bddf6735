from __future__ import annotations

from sqlalchemy.engine import Engine

from budget_api.db.base import Base
from budget_api.db.session import ENGINE
from budget_api.models import models  # noqa: F401  (ensure models are imported)


def init_db(engine: Engine | None = None) -> None:
    Base.metadata.create_all(bind=engine or ENGINE)
