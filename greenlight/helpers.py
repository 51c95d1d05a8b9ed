"""JSON envelope and error response helpers shared by the route handlers."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from greenlight.validators import parse_id

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    """Raised while reading a request body that cannot be used."""


def envelope(status_code: int, payload: Dict[str, Any], headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload, headers=dict(headers or {}))


def error_response(status_code: int, message: Any) -> JSONResponse:
    return envelope(status_code, {"error": message})


def not_found_response() -> JSONResponse:
    return error_response(404, "the requested resource could not be found")


def bad_request_response(exc: Exception) -> JSONResponse:
    return error_response(400, str(exc))


def failed_validation_response(errors: Dict[str, str]) -> JSONResponse:
    return error_response(422, errors)


def edit_conflict_response() -> JSONResponse:
    return error_response(409, "unable to update the record due to an edit conflict, please try again")


def server_error_response(request: Request, exc: BaseException) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "method=%s path=%s outcome=error error=%s request_id=%s",
        request.method,
        request.url.path,
        exc,
        request_id,
        exc_info=exc,
        extra={"request_id": request_id, "error": str(exc)},
    )
    return JSONResponse(
        status_code=500,
        content={"error": "the server encountered a problem and could not process your request"},
        headers={"Connection": "close"},
    )


def read_id_param(request: Request) -> Optional[int]:
    return parse_id(request.path_params.get("id"))


async def read_json(request: Request, allowed: Iterable[str]) -> Dict[str, Any]:
    """
    Decode a JSON object body, rejecting unknown keys.

    Raises:
        BadRequest: for empty, malformed, non-object bodies or unknown keys.
    """
    raw = await request.body()
    if not raw.strip():
        raise BadRequest("body must not be empty")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("body contains badly-formed JSON") from None
    if not isinstance(data, dict):
        raise BadRequest("body must contain a single JSON object")
    allowed_keys = set(allowed)
    for key in data:
        if key not in allowed_keys:
            raise BadRequest(f"body contains unknown key {key!r}")
    return data
