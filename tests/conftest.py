from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from budget_api.db.base import Base
from budget_api.db.deps import get_db
from budget_api.db.session import create_db_engine, create_session_factory
from budget_api.main import create_app


@pytest.fixture()
def engine():
    engine = create_db_engine("sqlite+pysqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine) -> Session:
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(engine) -> TestClient:
    TestingSessionLocal = create_session_factory(engine)

    app = create_app()

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
