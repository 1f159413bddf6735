"""Translate service-layer errors into HTTP responses."""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException, status

from budget_api.services.errors import (
    InvalidStateError,
    LinkValidationError,
    NotFoundError,
    TransferMatchError,
)


def raise_http(e: TransferMatchError) -> NoReturn:
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    if isinstance(e, LinkValidationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"reason": e.reason, "message": e.message},
        ) from e
    if isinstance(e, InvalidStateError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
