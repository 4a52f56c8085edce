"""Helpers for building JSON responses."""

from typing import Any, Dict, Optional

from fastapi import Response
from fastapi.responses import JSONResponse

from app.core.config import settings


def error_response(
    status_code: int,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    """Create the ``{"error": message}`` body shared by every failing route."""
    content: Dict[str, Any] = {"error": message}
    if details is not None:
        content["details"] = details
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.auth.cookie_name,
        value=token,
        max_age=settings.auth.session_max_age,
        httponly=True,
        secure=settings.auth.cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.auth.cookie_name, path="/")


def format_validation_errors(errors) -> list:
    """Flatten pydantic error dicts into ``"field: message"`` strings."""
    formatted = []
    for err in errors:
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        formatted.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return formatted
