"""Request middleware: body capture, authentication, logging, replay and CORS."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from bson import ObjectId
from pymongo.errors import PyMongoError
from werkzeug.wrappers import Request, Response

from judgeapi.auth import TokenError, hash_password, verify_token
from judgeapi.logs import COMPILE_PATH, LogEntry, LogsService

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Response]
Middleware = Callable[[Handler], Handler]

USERNAME_KEY = "judgeapi.username"
BODY_KEY = "judgeapi.body"
FULL_BODY_KEY = "judgeapi.full_body"

_OPEN_PATHS = frozenset({"/logIn", "/signUp"})
_BEARER_PREFIX_LENGTH = len("Bearer ")

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Requested-With",
    "Access-Control-Expose-Headers": "Authorization",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Max-Age": "86400",
}


def _http_error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status, content_type="text/plain; charset=utf-8")
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def _string_fields(raw: bytes | None, *names: str) -> dict[str, str] | None:
    """Read string fields from a JSON object body; None if it does not decode."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if data is None:
        return dict.fromkeys(names, "")
    if not isinstance(data, dict):
        return None
    fields = {}
    for name in names:
        value = data.get(name)
        if value is None:
            value = ""
        elif not isinstance(value, str):
            return None
        fields[name] = value
    return fields


def _remote_addr(request: Request) -> str:
    address = request.remote_addr or ""
    port = request.environ.get("REMOTE_PORT")
    if not port:
        return address
    host = f"[{address}]" if ":" in address else address
    return f"{host}:{port}"


def _username_for(request: Request) -> str:
    username = request.environ.get(USERNAME_KEY)
    if isinstance(username, str):
        return username
    if request.path in _OPEN_PATHS:
        fields = _string_fields(request.environ.get(BODY_KEY), "username")
        if fields is not None:
            return fields["username"]
    return ""


def body_capture_middleware(next_handler: Handler) -> Handler:
    """Keep the raw body of login and signup requests for the logger."""

    def handler(request: Request) -> Response:
        if request.path in _OPEN_PATHS:
            request.environ[BODY_KEY] = request.get_data(cache=True)
        return next_handler(request)

    return handler


def db_logging_middleware(db: Any) -> Middleware:
    """Record every request passing through in the ``logs`` collection."""
    logs = LogsService(db)

    def middleware(next_handler: Handler) -> Handler:
        def handler(request: Request) -> Response:
            start = time.monotonic()
            response = next_handler(request)

            entry = LogEntry(
                user_id=_username_for(request),
                method=request.method,
                path=request.path,
                response_status=response.status_code,
                duration=time.monotonic() - start,
                ip=_remote_addr(request),
                created_at=datetime.now(timezone.utc),
            )

            if request.path not in _OPEN_PATHS:
                fields = _string_fields(request.environ.get(FULL_BODY_KEY), "code", "problemId")
                if fields is not None:
                    entry.body = fields["code"]
                    problem_id = fields["problemId"]
                    if (
                        request.path == COMPILE_PATH
                        and len(problem_id) == 24
                        and ObjectId.is_valid(problem_id)
                    ):
                        entry.problem = problem_id
                if request.path == COMPILE_PATH:
                    data = response.get_data()
                    if data:
                        entry.response_body = data.decode("utf-8", errors="replace")

            try:
                logs.create_log(entry)
            except PyMongoError as exc:
                logger.error("Failed to log request: %s", exc)
                return _http_error("Internal server error", 500)
            return response

        return handler

    return middleware


def authenticate_middleware(next_handler: Handler) -> Handler:
    """Require a valid bearer token except on login and signup."""

    def handler(request: Request) -> Response:
        if request.path in _OPEN_PATHS:
            return next_handler(request)
        header = request.headers.get("Authorization", "")
        if not header:
            return _http_error("Authorization header required", 401)
        try:
            username = verify_token(header[_BEARER_PREFIX_LENGTH:])
        except TokenError:
            return _http_error("Invalid token", 401)
        request.environ[USERNAME_KEY] = username
        return next_handler(request)

    return handler


def repeated_request_middleware(db: Any) -> Middleware:
    """Keep the full body for the logger and replay the status of a known request."""
    logs = LogsService(db)

    def middleware(next_handler: Handler) -> Handler:
        def handler(request: Request) -> Response:
            body = request.get_data(cache=True)
            request.environ[FULL_BODY_KEY] = body
            try:
                body_hash = hash_password(body.decode("utf-8", errors="replace"))
            except ValueError:
                return next_handler(request)
            try:
                existing = logs.get_log_by_hash(body_hash)
            except PyMongoError:
                existing = None
            if existing is not None:
                return Response(status=existing.response_status)
            return next_handler(request)

        return handler

    return middleware


def cors_middleware(next_handler: Handler) -> Handler:
    """Add CORS headers and answer preflight requests directly."""

    def handler(request: Request) -> Response:
        if request.method == "OPTIONS":
            response = Response(status=200)
        else:
            response = next_handler(request)
        for name, value in _CORS_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    return handler