from __future__ import annotations

from fastapi import FastAPI

from budget_api.api.accounts import router as account_router
from budget_api.api.suggestions import router as suggestion_router
from budget_api.api.transactions import router as transaction_router
from budget_api.db.init_db import init_db
from budget_api.graphql.schema import graphql_router
from budget_api.logger import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    init_db()
    app = FastAPI(title="Budget Transfer Matching API")

    app.include_router(account_router)
    app.include_router(transaction_router)
    app.include_router(suggestion_router)

    app.include_router(graphql_router, prefix="/graphql")
    return app


app = create_app()
