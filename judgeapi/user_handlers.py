"""Sign-up and log-in endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from pymongo.errors import PyMongoError
from werkzeug.wrappers import Request, Response

from judgeapi.auth import check_password, create_token
from judgeapi.users import UserError, UserService

logger = logging.getLogger(__name__)

_SIGNUP_ERRORS = {
    "user already exists": ("User already exists", 409),
    "username contains invalid characters": ("Username contains invalid characters", 400),
    "email contains invalid characters": ("email contains invalid characters", 400),
}


def _http_error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status, content_type="text/plain; charset=utf-8")
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def _json_response(payload: dict[str, str], status: int) -> Response:
    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return Response(text + "\n", status=status, content_type="application/json")


def _decode_credentials(raw: bytes) -> dict[str, str]:
    """Read username, password and email from a JSON object body."""
    text = raw.decode("utf-8", errors="replace").lstrip(" \t\r\n")
    data, _ = json.JSONDecoder().raw_decode(text)
    names = ("username", "password", "email")
    if data is None:
        return dict.fromkeys(names, "")
    if not isinstance(data, dict):
        raise ValueError("request body is not an object")
    fields = {}
    for name in names:
        value = data.get(name)
        if value is None:
            value = ""
        elif not isinstance(value, str):
            raise ValueError(f"{name} is not a string")
        fields[name] = value
    return fields


def sign_up(db: Any) -> Callable[[Request], Response]:
    """Handler that registers a user and answers with a token."""
    users = UserService(db)

    def handler(request: Request) -> Response:
        if request.method != "POST":
            return _http_error("Method not allowed", 405)
        try:
            fields = _decode_credentials(request.get_data(cache=True))
        except ValueError as exc:
            logger.info("Error decoding JSON: %s", exc)
            return _http_error("Invalid JSON format", 400)

        username, password, email = fields["username"], fields["password"], fields["email"]
        if not username or not password or not email:
            return _http_error("Username and password are required", 400)

        try:
            created = users.create_user(username, email, password)
        except UserError as exc:
            known = _SIGNUP_ERRORS.get(str(exc))
            if known is not None:
                logger.info("Sign-up refused for %s: %s", username, exc)
                return _http_error(*known)
            logger.error("Failed to create user: %s", exc)
            return _http_error("Failed to create user", 500)
        except (ValueError, PyMongoError) as exc:
            logger.error("Failed to create user: %s", exc)
            return _http_error("Failed to create user", 500)

        return _json_response(
            {"message": "User created successfully", "token": create_token(created.username)},
            201,
        )

    return handler


def log_in(db: Any) -> Callable[[Request], Response]:
    """Handler that checks credentials and answers with a token."""
    users = UserService(db)

    def handler(request: Request) -> Response:
        if request.method != "POST":
            return _http_error("Method not allowed", 405)
        try:
            fields = _decode_credentials(request.get_data(cache=True))
        except ValueError:
            return _http_error("Invalid JSON format", 400)

        username, password = fields["username"], fields["password"]
        if not username or not password:
            return _http_error("Username and password are required", 400)

        try:
            user = users.get_user_by_username(username)
        except UserError as exc:
            if str(exc) == "user not found":
                return _http_error("User not found", 401)
            return _http_error("Invalid characters in username", 400)
        except PyMongoError:
            return _http_error("Invalid characters in username", 400)

        if not check_password(user.password, password):
            logger.info("Password verification failed")
            return _http_error("Invalid credentials", 401)

        return _json_response({"message": "Login successful", "token": create_token(username)}, 200)

    return handler