import json
import time
from types import SimpleNamespace

import jwt
from bson import ObjectId
from pymongo.errors import PyMongoError
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Response

from judgeapi.auth import SECRET_KEY, check_password, create_token
from judgeapi.middleware import (
    BODY_KEY,
    FULL_BODY_KEY,
    USERNAME_KEY,
    authenticate_middleware,
    body_capture_middleware,
    cors_middleware,
    db_logging_middleware,
    repeated_request_middleware,
)


class FakeCollection:
    def __init__(self):
        self.documents = []
        self.queries = []

    def insert_one(self, document):
        stored = dict(document)
        stored.setdefault("_id", ObjectId())
        self.documents.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def find(self, query=None, sort=None):
        query = query or {}
        return iter([dict(d) for d in self.documents if all(d.get(k) == v for k, v in query.items())])

    def find_one(self, query):
        self.queries.append(query)
        return next(self.find(query), None)


class FailingCollection(FakeCollection):
    def insert_one(self, document):
        raise PyMongoError("database unavailable")


class ReplayCollection(FakeCollection):
    def find_one(self, query):
        self.queries.append(query)
        return {"_id": ObjectId(), "status": 418, "body": query["body"]}


class FakeDB(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]


class Recorder:
    def __init__(self, response=None):
        self.requests = []
        self.response = response if response is not None else Response("ok")

    def __call__(self, request):
        self.requests.append(request)
        return self.response


def make_request(path, method="GET", body=None, headers=None, environ_base=None):
    return EnvironBuilder(
        path=path,
        method=method,
        data=body,
        headers=headers or {},
        environ_base=environ_base,
    ).get_request()


def bearer(username="testuser"):
    return {"Authorization": "Bearer " + create_token(username)}


def test_cors_preflight_short_circuits():
    recorder = Recorder()
    response = cors_middleware(recorder)(make_request("/logs", method="OPTIONS"))
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Max-Age"] == "86400"
    assert recorder.requests == []


def test_cors_adds_headers_without_overriding():
    inner = Response("ok")
    inner.headers["Access-Control-Allow-Origin"] = "https://app.example.com"
    response = cors_middleware(Recorder(inner))(make_request("/logs"))
    assert response.headers["Access-Control-Allow-Origin"] == "https://app.example.com"
    assert response.headers["Access-Control-Allow-Credentials"] == "true"
    assert response.get_data() == b"ok"


def test_authenticate_skips_open_paths():
    recorder = Recorder()
    response = authenticate_middleware(recorder)(make_request("/logIn", method="POST"))
    assert response.get_data() == b"ok"
    assert len(recorder.requests) == 1


def test_authenticate_requires_header():
    recorder = Recorder()
    response = authenticate_middleware(recorder)(make_request("/logs"))
    assert response.status_code == 401
    assert response.get_data(as_text=True) == "Authorization header required\n"
    assert recorder.requests == []


def test_authenticate_rejects_invalid_token():
    response = authenticate_middleware(Recorder())(
        make_request("/logs", headers={"Authorization": "Bearer token"})
    )
    assert response.status_code == 401
    assert "Invalid token" in response.get_data(as_text=True)


def test_authenticate_rejects_tampered_token():
    header = bearer()["Authorization"]
    start = header.rindex(".") + 1
    replacement = "B" if header[start] == "A" else "A"
    tampered = header[:start] + replacement + header[start + 1 :]
    response = authenticate_middleware(Recorder())(
        make_request("/problems", headers={"Authorization": tampered})
    )
    assert response.status_code == 401
    assert "Invalid token" in response.get_data(as_text=True)


def test_authenticate_rejects_expired_token():
    expired_jwt = jwt.encode(
        {"username": "testuser", "exp": int(time.time()) - 10}, SECRET_KEY, algorithm="HS256"
    )
    response = authenticate_middleware(Recorder())(
        make_request("/logs", headers={"Authorization": "Bearer " + expired_jwt})
    )
    assert response.status_code == 401


def test_authenticate_sets_username():
    recorder = Recorder()
    response = authenticate_middleware(recorder)(make_request("/logs", headers=bearer("carol")))
    assert response.status_code == 200
    assert recorder.requests[0].environ[USERNAME_KEY] == "carol"


def test_body_capture_on_login_only():
    recorder = Recorder()
    handler = body_capture_middleware(recorder)
    body = b'{"username": "alice"}'
    handler(make_request("/logIn", method="POST", body=body))
    handler(make_request("/logs", method="POST", body=body))
    assert recorder.requests[0].environ[BODY_KEY] == body
    assert recorder.requests[0].get_data() == body
    assert BODY_KEY not in recorder.requests[1].environ


def test_logging_login_takes_username_from_body():
    db = FakeDB()
    handler = body_capture_middleware(
        db_logging_middleware(db)(Recorder(Response("created", status=201)))
    )
    body = json.dumps({"username": "alice", "password": "password"})
    response = handler(
        make_request(
            "/signUp",
            method="POST",
            body=body,
            environ_base={"REMOTE_ADDR": "10.0.0.1", "REMOTE_PORT": "5555"},
        )
    )
    assert response.status_code == 201
    [document] = db["logs"].documents
    assert document["user_id"] == "alice"
    assert document["path"] == "/signUp"
    assert document["method"] == "POST"
    assert document["status"] == 201
    assert document["ip"] == "10.0.0.1:5555"
    assert document["body"] == ""
    assert document["duration"] >= 0


def test_logging_uses_authenticated_username():
    db = FakeDB()
    handler = authenticate_middleware(db_logging_middleware(db)(Recorder()))
    handler(make_request("/logs", headers=bearer("testuser")))
    [document] = db["logs"].documents
    assert document["user_id"] == "testuser"
    assert "case" not in document
    assert "response_body" not in document


def test_logging_compile_records_code_problem_and_response():
    db = FakeDB()
    problem_id = str(ObjectId())
    inner = Response('{"error":""}', status=200)
    handler = authenticate_middleware(
        repeated_request_middleware(db)(db_logging_middleware(db)(Recorder(inner)))
    )
    body = json.dumps({"code": "def f(): pass", "problemId": problem_id})
    response = handler(make_request("/compile", method="POST", body=body, headers=bearer()))
    assert response.status_code == 200
    [document] = db["logs"].documents
    assert document["body"] == "def f(): pass"
    assert document["case"] == ObjectId(problem_id)
    assert document["response_body"] == '{"error":""}'
    assert document["user_id"] == "testuser"


def test_logging_ignores_bad_problem_id():
    db = FakeDB()
    recorder = Recorder()
    handler = repeated_request_middleware(db)(db_logging_middleware(db)(recorder))
    body = json.dumps({"code": "x", "problemId": "nope"})
    handler(make_request("/compile", method="POST", body=body))
    [document] = db["logs"].documents
    assert document["body"] == "x"
    assert "case" not in document


def test_logging_failure_returns_500():
    db = FakeDB()
    db["logs"] = FailingCollection()
    response = db_logging_middleware(db)(Recorder())(make_request("/logs"))
    assert response.status_code == 500
    assert response.get_data(as_text=True) == "Internal server error\n"


def test_repeated_request_stores_body_and_hashes_it():
    db = FakeDB()
    recorder = Recorder()
    body = b'{"code":"x"}'
    response = repeated_request_middleware(db)(recorder)(make_request("/compile", "POST", body))
    assert response.get_data() == b"ok"
    assert recorder.requests[0].environ[FULL_BODY_KEY] == body
    assert recorder.requests[0].get_data() == body
    [query] = db["logs"].queries
    assert check_password(query["body"], body.decode()) is True


def test_repeated_request_replays_known_status():
    db = FakeDB()
    db["logs"] = ReplayCollection()
    recorder = Recorder()
    response = repeated_request_middleware(db)(recorder)(
        make_request("/compile", "POST", b'{"code":"x"}')
    )
    assert response.status_code == 418
    assert response.get_data() == b""
    assert recorder.requests == []


def test_repeated_request_skips_lookup_for_long_body():
    db = FakeDB()
    db["logs"] = ReplayCollection()
    recorder = Recorder()
    body = json.dumps({"code": "x" * 100}).encode()
    response = repeated_request_middleware(db)(recorder)(make_request("/compile", "POST", body))
    assert response.get_data() == b"ok"
    assert db["logs"].queries == []
    assert recorder.requests[0].environ[FULL_BODY_KEY] == body