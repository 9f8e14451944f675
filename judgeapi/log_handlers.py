"""Endpoints for request logs and users' solution history."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pymongo.errors import PyMongoError
from werkzeug.wrappers import Request, Response

from judgeapi.logs import LogEntry, LogsService, UserSolution
from judgeapi.middleware import USERNAME_KEY

logger = logging.getLogger(__name__)

PATH_PARAMS_KEY = "judgeapi.path_params"

_ZERO_ID = "0" * 24
_NANOS_PER_SECOND = 1_000_000_000
_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _to_json(value: Any, sort_keys: bool = False) -> str:
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=sort_keys)
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return text


def _json_response(payload: Any, status: int, sort_keys: bool = False) -> Response:
    return Response(
        _to_json(payload, sort_keys) + "\n", status=status, content_type="application/json"
    )


def _http_error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status, content_type="text/plain; charset=utf-8")
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def _path_value(request: Request, name: str) -> str:
    params = request.environ.get(PATH_PARAMS_KEY) or {}
    value = params.get(name, "")
    return value if isinstance(value, str) else ""


def _format_time(moment: datetime) -> str:
    """RFC 3339 in UTC with trailing zeros of the fraction trimmed."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    text = moment.replace(microsecond=0, tzinfo=None).isoformat()
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    return text + "Z"


def _log_to_dict(entry: LogEntry) -> dict[str, Any]:
    return {
        "ID": entry.id or _ZERO_ID,
        "UserID": entry.user_id,
        "Method": entry.method,
        "Path": entry.path,
        "ResponseStatus": entry.response_status,
        "Duration": round(entry.duration * _NANOS_PER_SECOND),
        "Body": entry.body,
        "ResponseBody": entry.response_body,
        "Problem": entry.problem or _ZERO_ID,
        "IP": entry.ip,
        "CreatedAt": _format_time(entry.created_at),
    }


def _solutions_response(solutions: list[UserSolution]) -> Response:
    payload = {
        "success": True,
        "solutions": [solution.to_dict() for solution in solutions] or None,
        "totalSolutions": len(solutions),
    }
    return _json_response(payload, 200, sort_keys=True)


def _current_user(request: Request) -> str | None:
    username = request.environ.get(USERNAME_KEY)
    return username if isinstance(username, str) else None


def get_logs(db: Any) -> Callable[[Request], Response]:
    """Handler that lists every stored request log."""
    logs = LogsService(db)

    def handler(request: Request) -> Response:
        if request.method != "GET":
            return _http_error("Method not allowed", 405)
        try:
            entries = logs.get_all_logs()
        except (PyMongoError, TypeError, ValueError) as exc:
            logger.error("Failed to retrieve logs: %s", exc)
            return _http_error("Failed to retrieve logs", 500)
        if not entries:
            return _http_error("No logs found", 404)
        return _json_response([_log_to_dict(entry) for entry in entries], 200)

    return handler


def get_user_solutions(db: Any) -> Callable[[Request], Response]:
    """Handler that lists the current user's attempts on one problem."""
    logs = LogsService(db)

    def handler(request: Request) -> Response:
        if request.method != "GET":
            return _http_error("Method not allowed", 405)
        problem_id = _path_value(request, "id")
        if not problem_id:
            return _http_error("Problem ID is required", 400)
        username = _current_user(request)
        if username is None:
            return _http_error("User not authenticated", 401)
        try:
            solutions = logs.get_user_solutions_by_problem(username, problem_id)
        except (PyMongoError, ValueError):
            return _http_error("Failed to retrieve solutions", 500)
        return _solutions_response(solutions)

    return handler


def get_all_user_solutions(db: Any) -> Callable[[Request], Response]:
    """Handler that lists all of the current user's attempts."""
    logs = LogsService(db)

    def handler(request: Request) -> Response:
        if request.method != "GET":
            return _http_error("Method not allowed", 405)
        username = _current_user(request)
        if username is None:
            return _http_error("User not authenticated", 401)
        try:
            solutions = logs.get_all_user_solutions(username)
        except (PyMongoError, ValueError):
            return _http_error("Failed to retrieve solutions", 500)
        return _solutions_response(solutions)

    return handler