"""Users and their storage."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from bson import ObjectId

from judgeapi.auth import check_password, hash_password

_FORBIDDEN = set("<>\"'${}[]|\\^`")
_ZERO_ID = "0" * 24
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class UserError(Exception):
    """A user operation failed; the message names the reason."""


def is_sanitized(text: str) -> bool:
    """True if ``text`` holds none of the characters used in injections."""
    return _FORBIDDEN.isdisjoint(text)


def _parse_user_id(user_id: str) -> ObjectId:
    if not isinstance(user_id, str) or len(user_id) != 24 or not ObjectId.is_valid(user_id):
        raise UserError("invalid user ID")
    return ObjectId(user_id)


@dataclass
class User:
    """A stored user; ``password`` holds the bcrypt hash."""

    id: str = _ZERO_ID
    username: str = ""
    password: str = ""
    email: str = ""
    created_at: datetime = _ZERO_TIME
    updated_at: datetime = _ZERO_TIME

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> User:
        return cls(
            id=str(document.get("_id", _ZERO_ID)),
            username=document.get("username", ""),
            password=document.get("password", ""),
            email=document.get("email", ""),
            created_at=document.get("created_at") or _ZERO_TIME,
            updated_at=document.get("updated_at") or _ZERO_TIME,
        )


class UserService:
    """User operations on the ``users`` collection."""

    def __init__(self, db: Any) -> None:
        self.collection = db["users"]

    def create_user(self, username: str, email: str, password: str) -> User:
        """Store a new user with a hashed password and return it."""
        if not is_sanitized(email):
            raise UserError("email contains invalid characters")
        hashed = hash_password(password)

        try:
            self.get_user_by_username(username)
        except UserError as exc:
            if str(exc) != "user not found":
                raise
        else:
            raise UserError("user already exists")

        now = datetime.now(timezone.utc)
        user = User(
            username=username,
            password=hashed,
            email=email,
            created_at=now,
            updated_at=now,
        )
        result = self.collection.insert_one(
            {
                "username": user.username,
                "password": user.password,
                "email": user.email,
                "created_at": user.created_at,
                "updated_at": user.updated_at,
            }
        )
        user.id = str(result.inserted_id)
        return user

    def get_user_by_username(self, username: str) -> User:
        if not is_sanitized(username):
            raise UserError("username contains invalid characters")
        document = self.collection.find_one({"username": username})
        if document is None:
            raise UserError("user not found")
        return User.from_document(document)

    def get_user_by_id(self, user_id: str) -> User:
        document = self.collection.find_one({"_id": _parse_user_id(user_id)})
        if document is None:
            raise UserError("user not found")
        return User.from_document(document)

    def get_all_users(self) -> list[User]:
        return [User.from_document(document) for document in self.collection.find({})]

    def update_user(self, user_id: str, updates: Mapping[str, Any]) -> User:
        """Set the given fields, stamp ``updated_at`` and return the user."""
        object_id = _parse_user_id(user_id)
        changes = {**updates, "updated_at": datetime.now(timezone.utc)}
        self.collection.update_one({"_id": object_id}, {"$set": changes})
        return self.get_user_by_id(user_id)

    def delete_user(self, user_id: str) -> None:
        self.collection.delete_one({"_id": _parse_user_id(user_id)})

    def validate_user_password(self, username: str, password: str) -> bool:
        """Return True if the password matches; raise UserError otherwise."""
        user = self.get_user_by_username(username)
        if not check_password(user.password, password):
            raise UserError("invalid password")
        return True