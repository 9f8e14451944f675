"""Endpoints that read problems."""

from __future__ import annotations

import json
from typing import Any, Callable

from pymongo.errors import PyMongoError
from werkzeug.wrappers import Request, Response

from judgeapi.log_handlers import PATH_PARAMS_KEY
from judgeapi.problems import ProblemService

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _json_response(payload: Any, status: int) -> Response:
    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return Response(text + "\n", status=status, content_type="application/json")


def _http_error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status, content_type="text/plain; charset=utf-8")
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def get_problem_by_id(db: Any) -> Callable[[Request], Response]:
    """Handler that returns one problem by the id in the path."""
    problems = ProblemService(db)

    def handler(request: Request) -> Response:
        if request.method != "GET":
            return _http_error("Method not allowed", 405)
        params = request.environ.get(PATH_PARAMS_KEY) or {}
        problem_id = params.get("id", "")
        if not problem_id:
            return _http_error("Problem ID is required", 400)
        try:
            problem = problems.get_problem_by_id(problem_id)
        except LookupError:
            return _http_error("Problem not found", 404)
        except (ValueError, TypeError, PyMongoError):
            return _http_error("Internal server error", 500)
        return _json_response(problem.to_dict(), 200)

    return handler


def get_all_problems(db: Any) -> Callable[[Request], Response]:
    """Handler that lists every problem."""
    problems = ProblemService(db)

    def handler(request: Request) -> Response:
        if request.method != "GET":
            return _http_error("Method not allowed", 405)
        try:
            found = problems.get_all_problems()
        except (ValueError, TypeError, PyMongoError):
            return _http_error("Internal server error", 500)
        return _json_response([problem.to_dict() for problem in found] or None, 200)

    return handler