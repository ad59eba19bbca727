"""Shared helpers for logging incoming HTTP requests."""

from __future__ import annotations

from typing import Any


def log_request(logger, request: Any) -> None:
    """
    Emit a structured log for the current HTTP request.

    Accepts a Flask/Werkzeug request object; anything without a method and
    path is ignored.
    """
    method = getattr(request, "method", None)
    path = getattr(request, "path", None)
    if not (method and path):
        return

    args = getattr(request, "args", None) or {}
    query = {key: args.get(key) for key in args}
    view_args = getattr(request, "view_args", None) or {}

    logger.info(
        "HTTP request method=%s path=%s query=%s path_params=%s",
        method,
        path,
        query,
        view_args,
    )


def _truncate(value: str, *, limit: int = 2048) -> str:
    if len(value) <= limit:
        return value
    return f"{value[:limit]}...<truncated>"


def body_preview(body: Any) -> str:
    """Return a log-safe preview of a request or error body."""

    if body is None:
        return "<null>"
    if isinstance(body, (bytes, bytearray)):
        try:
            decoded = body.decode("utf-8")
        except UnicodeDecodeError:
            return "<binary>"
        return _truncate(decoded)
    return _truncate(str(body))
