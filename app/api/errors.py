import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    AccessDenied,
    DuplicateTable,
    DynamicoError,
    PersistenceError,
    ValidationFailed,
)

# Most specific class first
ERROR_STATUS_CODES = [
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (DuplicateTable, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_400_BAD_REQUEST),
]


def status_code_for(error: DynamicoError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def dynamico_error_handler(request: Request, error: DynamicoError):
    status_code = status_code_for(error)
    logging.error(f"{request.method} {request.url.path} failed ({status_code}): {error}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(error), "error": type(error).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DynamicoError, dynamico_error_handler)
