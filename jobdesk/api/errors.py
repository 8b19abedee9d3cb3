"""Map domain errors onto the JSON error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from jobdesk.errors import ErrorKind, InvalidSubmissionError, JobDeskError

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INFRASTRUCTURE: 503,
}


def error_response(error: JobDeskError, *, details: object | None = None) -> JSONResponse:
    content: dict[str, object] = {"error": error.to_payload()}
    payload_details = details if details is not None else (error.details or None)
    if payload_details is not None:
        content["details"] = jsonable_encoder(payload_details)
    return JSONResponse(status_code=STATUS_BY_KIND[error.kind], content=content)


async def handle_domain_error(request: Request, exc: JobDeskError) -> JSONResponse:
    log = logger.warning if exc.kind is ErrorKind.INFRASTRUCTURE else logger.info
    log(
        "request failed",
        extra={"path": request.url.path, "error_code": exc.code, "error_kind": exc.kind.value},
    )
    return error_response(exc)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidSubmissionError("Request body failed validation")
    return error_response(error, details=exc.errors())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JobDeskError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
