from typing import Generator

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from medly.core.results import CONFLICT, NOT_FOUND, PERMISSION, STATE, VALIDATION, Result
from medly.db.session import get_db
from medly.store import EntityStore, SqlEntityStore

_STATUS_BY_KIND = {
    VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    STATE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    CONFLICT: status.HTTP_409_CONFLICT,
    PERMISSION: status.HTTP_403_FORBIDDEN,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def get_store(db: Session = Depends(get_db)) -> Generator[EntityStore, None, None]:
    yield SqlEntityStore(db)


def unwrap(result: Result):
    """Returns the result's data or raises the matching HTTP error."""
    if result.success:
        if result.warnings:
            return {"data": result.data, "warnings": result.warnings}
        return result.data
    raise HTTPException(
        status_code=_STATUS_BY_KIND.get(result.kind, status.HTTP_400_BAD_REQUEST),
        detail=result.error,
    )
