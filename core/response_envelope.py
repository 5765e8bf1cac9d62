"""JSON bodies shared by every route.

Success bodies are flat: ``{"success": true, "message": ..., <result keys>,
"serverTime": ...}``. Failure bodies carry ``success: false``, the
human-readable ``message``, the raw ``error`` string and a ``data`` block
with the error code, plus whatever extra top-level keys the exception
supplies (``path``, ``deletedCount``, ``errors``).
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.responses import Response

_ENVELOPE_ATTR = "__envelope__"
_RESERVED_KEYS = {"success", "serverTime", "requestId"}
_DETAIL_KEYS = {"message", "code", "details", "error", "extra"}


@dataclass(frozen=True)
class Envelope:
    message: str
    status_code: int = status.HTTP_200_OK
    example: Any | None = None
    errors: dict[int, str] = field(default_factory=dict)


def server_time() -> str:
    return datetime.now(timezone.utc).isoformat()


def _stamp(payload: dict[str, Any], request_id: str | None) -> dict[str, Any]:
    payload["serverTime"] = server_time()
    if request_id:
        payload["requestId"] = request_id
    return payload


def success_payload(
    data: Any,
    message: str = "Success",
    *,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Merge a mapping result into the top level, or wrap anything else in ``data``.

    A ``message`` key in the mapping replaces the default message.
    """
    payload: dict[str, Any] = {"success": True, "message": message}
    if isinstance(data, dict):
        payload.update((key, value) for key, value in data.items() if key not in _RESERVED_KEYS)
    elif data is not None:
        payload["data"] = data
    return _stamp(payload, request_id)


def error_payload(
    message: str,
    data: Any = None,
    *,
    error: str | None = None,
    extra: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "message": message,
        "error": error or message,
        "data": data,
    }
    payload.update((key, value) for key, value in (extra or {}).items() if key not in _RESERVED_KEYS)
    return _stamp(payload, request_id)


def error_response(
    *,
    status_code: int,
    message: str,
    data: Any = None,
    error: str | None = None,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    body = error_payload(message=message, data=data, error=error, extra=extra, request_id=request_id)
    return JSONResponse(status_code=status_code, headers=headers, content=jsonable_encoder(body))


def request_id_from_request(request: Request | None) -> str | None:
    if request is None:
        return None
    return getattr(request.state, "request_id", None)


def http_exception_response(exc: HTTPException, request: Request | None = None) -> JSONResponse:
    detail = exc.detail
    message = "Request failed"
    data: dict[str, Any] = {"code": "HTTP_EXCEPTION", "details": None}
    error: str | None = None
    extra: dict[str, Any] | None = None

    if isinstance(detail, dict) and isinstance(detail.get("message"), str) and detail["message"].strip():
        # Raised through core.errors.AppException.
        message = detail["message"]
        data = {"code": detail.get("code", "HTTP_EXCEPTION"), "details": detail.get("details")}
        error = detail.get("error")
        extra = detail.get("extra") if isinstance(detail.get("extra"), dict) else None
        unknown = {key: value for key, value in detail.items() if key not in _DETAIL_KEYS}
        if unknown:
            data["details"] = {"extra": unknown, "details": data["details"]}
    elif isinstance(detail, str) and detail:
        # Framework errors such as 404 for an unknown route or 405.
        message = detail
    elif detail is not None:
        data["details"] = detail

    return error_response(
        status_code=exc.status_code,
        message=message,
        data=data,
        error=error,
        extra=extra,
        headers=exc.headers,
        request_id=request_id_from_request(request),
    )


def _find_request(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Request | None:
    for value in (*kwargs.values(), *args):
        if isinstance(value, Request):
            return value
    return None


def document_response(
    *,
    message: str = "Success",
    status_code: int = status.HTTP_200_OK,
    success_example: Any | None = None,
    response_codes: dict[int, str] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap a route so its return value is sent inside the success envelope.

    Routes that return a ``Response`` (downloads, for instance) pass through
    untouched.
    """
    envelope = Envelope(
        message=message,
        status_code=status_code,
        example=success_example,
        errors=dict(response_codes or {}),
    )

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Response:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, Response):
                return result

            request_id = request_id_from_request(_find_request(args, kwargs))
            return JSONResponse(
                status_code=envelope.status_code,
                content=jsonable_encoder(success_payload(result, envelope.message, request_id=request_id)),
            )

        setattr(wrapper, _ENVELOPE_ATTR, envelope)
        return wrapper

    return decorator


def document_deleted(*, message: str = "Deleted", success_example: Any | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return document_response(
        message=message,
        success_example=success_example if success_example is not None else {"path": "docs/x.txt"},
        response_codes={207: "Partial deletion, see errors[]", 404: "Not found"},
    )


def _json_example(description: str, example: dict[str, Any]) -> dict[str, Any]:
    return {"description": description, "content": {"application/json": {"example": example}}}


def apply_response_documentation(app: FastAPI) -> None:
    """Publish the envelope shapes in the OpenAPI schema of decorated routes."""
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        envelope = getattr(route.endpoint, _ENVELOPE_ATTR, None)
        if not isinstance(envelope, Envelope):
            continue

        route.status_code = envelope.status_code
        responses = dict(route.responses or {})
        responses.setdefault(
            envelope.status_code,
            _json_example("Successful response", success_payload(envelope.example, envelope.message)),
        )
        for code, description in envelope.errors.items():
            responses.setdefault(code, _json_example(description, error_payload(description)))
        route.responses = responses

    app.openapi_schema = None
