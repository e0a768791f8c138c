"""Domain error taxonomy and the HTTP handlers that surface it.

Ledger operations raise these; routers let them propagate and the handlers
registered in ``create_app`` turn them into JSON error bodies.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger("pocketledger.errors")


class LedgerError(Exception):
    """Base class for failures raised by the ledger core."""

    kind = "ledger_error"


class InvalidArgument(LedgerError, ValueError):
    """Rejected before any balance was touched."""

    kind = "invalid_argument"


class NotFound(LedgerError, LookupError):
    kind = "not_found"


class PersistenceError(LedgerError):
    """A store write failed; in-memory state was rolled back. Safe to retry."""

    kind = "persistence_error"
    retryable = True


def _error_body(kind: str, detail) -> dict:
    return {"error": kind, "detail": detail}


def http_error_handler(request: Request, exc):  # type: ignore
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(
            "not_found" if exc.status_code == 404 else "http_error",
            exc.detail or f"No route for {request.method} {request.url.path}",
        ),
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("validation_error", jsonable_errors(exc)),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw exception object, which json cannot encode
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


def ledger_error_handler(request: Request, exc: LedgerError):  # type: ignore
    if isinstance(exc, InvalidArgument):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, PersistenceError):
        logger.error("persistence failure on %s: %s", request.url.path, exc)
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=_error_body(exc.kind, str(exc)))


def rate_fetch_error_handler(request: Request, exc):  # type: ignore
    logger.warning("rate refresh failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=_error_body("rate_fetch_error", str(exc)),
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("internal_error", "An unexpected error occurred."),
    )
