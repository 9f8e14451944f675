from collections import defaultdict
from types import SimpleNamespace

import pytest
from bson import ObjectId

from judgeapi.auth import check_password
from judgeapi.users import User, UserError, UserService, is_sanitized

EMAIL = "test@example.com"


class FakeCollection:
    def __init__(self):
        self.documents = []

    def _matches(self, document, query):
        return all(document.get(key) == value for key, value in query.items())

    def find_one(self, query):
        return next((dict(d) for d in self.documents if self._matches(d, query)), None)

    def find(self, query=None):
        return [dict(d) for d in self.documents if self._matches(d, query or {})]

    def insert_one(self, document):
        stored = {"_id": ObjectId(), **document}
        self.documents.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def update_one(self, query, update):
        for document in self.documents:
            if self._matches(document, query):
                document.update(update["$set"])
                return SimpleNamespace(matched_count=1)
        return SimpleNamespace(matched_count=0)

    def delete_one(self, query):
        for document in self.documents:
            if self._matches(document, query):
                self.documents.remove(document)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


@pytest.fixture
def db():
    return defaultdict(FakeCollection)


@pytest.fixture
def service(db):
    return UserService(db)


@pytest.fixture
def created(service):
    password = "password"
    return service.create_user("testuser", EMAIL, password)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("testuser", True),
        (EMAIL, True),
        ("a<b", False),
        ("x$y", False),
        ("back\\slash", False),
        ("{}", False),
        ("tick`", False),
    ],
)
def test_is_sanitized(text, expected):
    assert is_sanitized(text) is expected


def test_create_user_stores_hashed_password(created, db):
    assert created.username == "testuser"
    assert created.email == EMAIL
    assert check_password(created.password, "password")
    stored = db["users"].documents[0]
    assert str(stored["_id"]) == created.id
    assert stored["password"] == created.password


def test_duplicate_user_is_refused(service, created):
    with pytest.raises(UserError, match="user already exists"):
        service.create_user("testuser", EMAIL, "password")


def test_bad_email_is_refused(service, db):
    with pytest.raises(UserError, match="email contains invalid characters"):
        service.create_user("testuser", "<x>@example.com", "password")
    assert db["users"].documents == []


def test_bad_username_is_refused(service):
    with pytest.raises(UserError, match="username contains invalid characters"):
        service.create_user("test$user", EMAIL, "password")


def test_get_user_by_username(service, created):
    assert service.get_user_by_username("testuser").id == created.id


def test_unknown_username(service):
    with pytest.raises(UserError, match="user not found"):
        service.get_user_by_username("nobody")


def test_get_user_by_id(service, created):
    assert service.get_user_by_id(created.id).username == "testuser"


def test_get_user_by_invalid_id(service):
    with pytest.raises(UserError, match="invalid user ID"):
        service.get_user_by_id("xyz")


def test_get_user_by_unknown_id(service):
    with pytest.raises(UserError, match="user not found"):
        service.get_user_by_id(str(ObjectId()))


def test_get_all_users(service, created):
    service.create_user("other", "other@example.com", "password")
    assert sorted(user.username for user in service.get_all_users()) == ["other", "testuser"]


def test_update_user(service, created):
    updated = service.update_user(created.id, {"email": "new@example.com"})
    assert updated.email == "new@example.com"
    assert updated.updated_at >= created.updated_at


def test_update_unknown_user(service):
    with pytest.raises(UserError, match="user not found"):
        service.update_user(str(ObjectId()), {"email": "new@example.com"})


def test_delete_user(service, created):
    service.delete_user(created.id)
    assert service.get_all_users() == []


def test_delete_with_invalid_id(service):
    with pytest.raises(UserError, match="invalid user ID"):
        service.delete_user("nope")


def test_validate_user_password(service, created):
    assert service.validate_user_password("testuser", "password") is True
    with pytest.raises(UserError, match="invalid password"):
        service.validate_user_password("testuser", "placeholder")


def test_user_from_document_defaults():
    user = User.from_document({"username": "testuser"})
    assert (user.username, user.email, user.created_at.year) == ("testuser", "", 1)