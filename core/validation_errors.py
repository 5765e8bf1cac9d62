from __future__ import annotations

from typing import Any, Iterable

_REQUEST_PARTS = ("body", "query", "path", "header", "cookie")
_ROOT = "(root)"


def _split_location(loc: Any) -> tuple[str, str]:
    if loc is None:
        parts: list[str] = []
    elif isinstance(loc, (list, tuple)):
        parts = [str(part) for part in loc]
    else:
        parts = [str(loc)]

    location = "body"
    if parts and parts[0] in _REQUEST_PARTS:
        location, parts = parts[0], parts[1:]
    return location, ".".join(parts) or _ROOT


def build_validation_summary(*, missing_fields: list[str], error_count: int) -> str:
    if missing_fields:
        noun = "field" if len(missing_fields) == 1 else "fields"
        return f"Validation failed: missing required {noun}: {', '.join(missing_fields)}."
    noun = "field" if error_count == 1 else "fields"
    return f"Validation failed for {error_count} {noun}."


def format_validation_error_details(errors: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Reduce pydantic errors to path/location/message entries.

    Raw ``input`` values are dropped: for multipart uploads they can hold
    file handles or bytes that are not JSON serializable.
    """
    field_errors: list[dict[str, str]] = []
    missing_fields: list[str] = []

    for error in errors:
        location, path = _split_location(error.get("loc"))
        error_type = str(error.get("type", "validation_error"))
        field_errors.append(
            {
                "path": path,
                "location": location,
                "message": str(error.get("msg", "Invalid value")),
                "errorType": error_type,
            }
        )
        if error_type == "missing" and path not in missing_fields:
            missing_fields.append(path)

    return {
        "summary": build_validation_summary(missing_fields=missing_fields, error_count=len(field_errors)),
        "missingFields": missing_fields,
        "fieldErrors": field_errors,
    }
