# Overview: Small request/response helpers shared by the API blueprints.

from __future__ import annotations

from flask import current_app, jsonify, request

from .services.concurrency import run_with_retry
from .time_utils import parse_iso_date
from .validation import ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def error_response(exc, status: int):
    """{"error": message, "details": {...}} with the given status."""
    message = getattr(exc, "message", None) or str(exc)
    return jsonify({"error": message, "details": getattr(exc, "details", None) or {}}), status


def with_retry(func):
    """Run a write with the configured number of attempts on ConflictError."""
    return run_with_retry(func, attempts=current_app.config.get("CONFLICT_RETRY_ATTEMPTS", 3))


def pagination_args() -> tuple[int | None, int | None]:
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int) or request.args.get("limit", type=int)
    return page, per_page


def date_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")


def bool_arg(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
