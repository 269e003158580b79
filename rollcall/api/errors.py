# rollcall/api/errors.py
"""Every error leaves the API as {"code", "message", "details"}."""
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.requests import Request

from rollcall.core.errors import RollcallError, StorageUnavailable

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "1"


def _body(code: str, message: str, details=None) -> dict:
    return {"code": code, "message": message, "details": details}


async def storage_unavailable(request: Request, exc: StorageUnavailable):
    logger.warning("503 on %s %s: %s", request.method, request.url.path, exc.details)
    return JSONResponse(exc.as_dict(), status_code=exc.status_code, headers={"Retry-After": RETRY_AFTER_SECONDS})


async def rollcall_error(request: Request, exc: RollcallError):
    return JSONResponse(exc.as_dict(), status_code=exc.status_code)


async def integrity_error(request: Request, exc: IntegrityError):
    # constraint the services did not anticipate
    logger.warning("integrity error on %s %s: %s", request.method, request.url.path, getattr(exc, "orig", exc))
    return JSONResponse(_body("UNIQUE_VIOLATION", "Duplicate record."), status_code=409)


async def unexpected_error(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(_body("INTERNAL_ERROR", "Internal error."), status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorageUnavailable, storage_unavailable)
    app.add_exception_handler(RollcallError, rollcall_error)
    app.add_exception_handler(IntegrityError, integrity_error)
    app.add_exception_handler(Exception, unexpected_error)
