"""
Map pool engine exceptions to HTTPException.

Routes catch PoolEngineError and re-raise through to_http_exception() so every
endpoint reports the same status per error family, with the error code in the
detail body.
"""
from fastapi import HTTPException

from bracket_pool.services.errors import (
    ConsistencyError,
    NotFoundError,
    PoolEngineError,
    StateError,
    ValidationError,
)


def status_for(exc: PoolEngineError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, StateError):
        return 409
    if isinstance(exc, ConsistencyError):
        return 500
    return 400


def to_http_exception(exc: PoolEngineError) -> HTTPException:
    return HTTPException(status_code=status_for(exc), detail={"code": exc.code, "message": str(exc)})
