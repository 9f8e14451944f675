"""Token issuing and verification, and password hashing."""

from __future__ import annotations

import time

import bcrypt
import jwt

SECRET_KEY = b"secret"
TOKEN_LIFETIME = 24 * 60 * 60
BCRYPT_COST = 10

_MAX_PASSWORD_BYTES = 72
_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


class TokenError(Exception):
    """Raised when a token is malformed, badly signed, expired or incomplete."""


def create_token(username: str) -> str:
    """Issue an HS256-signed token for ``username`` valid for 24 hours."""
    claims = {"username": username, "exp": int(time.time()) + TOKEN_LIFETIME}
    return jwt.encode(claims, SECRET_KEY, algorithm="HS256")


def verify_token(token_string: str) -> str:
    """Check the signature and expiry of a token and return its username."""
    try:
        claims = jwt.decode(
            token_string,
            SECRET_KEY,
            algorithms=_HMAC_ALGORITHMS,
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError as exc:
        raise TokenError(f"signature verification failed or token malformed: {exc}") from exc

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise TokenError("claim 'exp' missing or malformed")
    if int(exp) < int(time.time()):
        raise TokenError("token expired")

    username = claims.get("username")
    if not isinstance(username, str):
        raise TokenError("username not found in token claims")
    return username


def hash_password(password: str) -> str:
    """Return a bcrypt hash of ``password``; passwords over 72 bytes are refused."""
    raw = password.encode("utf-8")
    if len(raw) > _MAX_PASSWORD_BYTES:
        raise ValueError("password length exceeds 72 bytes")
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=BCRYPT_COST)).decode("ascii")


def check_password(hashed: str, password: str) -> bool:
    """Tell whether ``password`` matches the bcrypt hash ``hashed``."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False