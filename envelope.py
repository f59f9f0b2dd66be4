"""
Response envelope

Every endpoint answers with {status, data, msg}. Failures of any kind end up in
`error_response`, which defaults to a 500 "Server Error".
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APP_STATUS:
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Envelope(BaseModel):
    status: str
    data: Any = None
    msg: str = ""


def success(data: Any = None, msg: str = "") -> Dict[str, Any]:
    return {"status": APP_STATUS.SUCCESS, "data": data, "msg": msg}


def error_response(status_code: Optional[int] = None, msg: Optional[str] = None, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or 500,
        content=jsonable_encoder({"status": APP_STATUS.FAILED, "data": None, "msg": msg or "Server Error"}),
        headers=headers,
    )


def _field_label(loc: tuple) -> str:
    name = str(loc[-1]) if loc else "body"
    return name[:1].upper() + name[1:]


def describe_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """Join field failures into one message, one line per failure."""
    messages = []
    for err in errors:
        label = _field_label(tuple(err.get("loc", ())))
        if err.get("type") == "json_invalid":
            messages.append("Invalid JSON body")
            continue
        if err.get("type") in ("missing", "string_too_short"):
            messages.append(f"{label} is required")
            continue
        cause = (err.get("ctx") or {}).get("error")
        if isinstance(cause, Exception):
            messages.append(str(cause))
        else:
            messages.append(f"{label}: {err.get('msg')}")
    return "\n".join(messages)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    msg = exc.detail if isinstance(exc.detail, str) else None
    return error_response(exc.status_code, msg, getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, describe_validation_errors(exc.errors()))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response()


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
