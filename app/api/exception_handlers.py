# app/api/exception_handlers.py
"""
Exception handlers turning domain exceptions into JSON responses.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.exceptions import ExpenseDocsException

logger = logging.getLogger(__name__)


async def expense_docs_exception_handler(request: Request, exc: ExpenseDocsException):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code, content=jsonable_encoder(exc.to_dict())
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder({"detail": exc.errors()}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ExpenseDocsException, expense_docs_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
