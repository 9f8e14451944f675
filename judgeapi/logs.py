"""Request logs and the solution history built from them."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from bson import ObjectId

logger = logging.getLogger(__name__)

FAILED = "failed"
PASSED = "passed"
PARTIAL = "partial"
COMPILE_PATH = "/compile"

_SUCCESS = "Success"
_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MINUTE = 60 * _NANOS_PER_SECOND
_ZERO_ID = "0" * 24
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_NEWEST_FIRST = [("created_at", -1)]


def _parse_object_id(text: str) -> ObjectId:
    if not isinstance(text, str) or len(text) != 24 or not ObjectId.is_valid(text):
        raise ValueError(f"invalid object id: {text!r}")
    return ObjectId(text)


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _rfc3339(moment: datetime) -> str:
    return _utc(moment).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def _with_fraction(value: int, digits: int) -> str:
    whole, fraction = divmod(value, 10**digits)
    if not fraction:
        return str(whole)
    return f"{whole}.{fraction:0{digits}d}".rstrip("0")


def format_duration(seconds: float) -> str:
    """Render a duration the way ``1h2m3.5s``, ``1.5ms`` or ``0s`` are written."""
    nanos = round(seconds * _NANOS_PER_SECOND)
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)
    if nanos < _NANOS_PER_SECOND:
        if nanos < 1_000:
            return f"{sign}{nanos}ns"
        if nanos < 1_000_000:
            return f"{sign}{_with_fraction(nanos, 3)}µs"
        return f"{sign}{_with_fraction(nanos, 6)}ms"
    seconds_text = _with_fraction(nanos % _NANOS_PER_MINUTE, 9)
    total_minutes = nanos // _NANOS_PER_MINUTE
    if not total_minutes:
        return f"{sign}{seconds_text}s"
    hours, minutes = divmod(total_minutes, 60)
    if not hours:
        return f"{sign}{minutes}m{seconds_text}s"
    return f"{sign}{hours}h{minutes}m{seconds_text}s"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} is not a string")
    return value


def _read_compile_response(text: str) -> tuple[str, list[str]]:
    """Return the error text and per-test statuses of a stored compile response."""
    data = json.loads(text)
    if data is None:
        return "", []
    if not isinstance(data, dict):
        raise ValueError("compile response is not an object")
    error = _optional_str(data, "error")
    _optional_str(data, "status")
    for key in ("line", "column"):
        value = data.get(key)
        if value is not None and not _is_int(value):
            raise ValueError(f"{key} is not an integer")
    results = data.get("result")
    if results is None:
        results = []
    if not isinstance(results, list):
        raise ValueError("result is not a list")
    statuses = []
    for item in results:
        if item is None:
            statuses.append("")
            continue
        if not isinstance(item, dict):
            raise ValueError("result entry is not an object")
        statuses.append(_optional_str(item, "status"))
        for key in ("output", "expectedOutput"):
            values = item.get(key)
            if values is None:
                continue
            if not isinstance(values, list) or not all(
                value is None or _is_int(value) for value in values
            ):
                raise ValueError(f"{key} is not a list of integers")
    return error, statuses


def solution_status(response_body: str) -> str:
    """Classify a stored compile response as passed, partial or failed."""
    if not response_body:
        return FAILED
    try:
        error, statuses = _read_compile_response(response_body)
    except ValueError:
        return FAILED
    if error:
        return FAILED
    passed = statuses.count(_SUCCESS)
    if passed == 0:
        return FAILED
    return PASSED if passed == len(statuses) else PARTIAL


@dataclass
class LogEntry:
    """One handled request; ``duration`` is in seconds."""

    id: str | None = None
    user_id: str | None = None
    method: str = ""
    path: str = ""
    response_status: int = 0
    duration: float = 0.0
    body: str = ""
    response_body: str = ""
    problem: str | None = None
    ip: str = ""
    created_at: datetime = _ZERO_TIME

    def to_document(self) -> dict[str, Any]:
        """Stored form; the duration is kept in whole nanoseconds."""
        document: dict[str, Any] = {}
        if self.id is not None:
            document["_id"] = _parse_object_id(self.id)
        if self.user_id is not None:
            document["user_id"] = self.user_id
        document["method"] = self.method
        document["path"] = self.path
        document["status"] = self.response_status
        document["duration"] = round(self.duration * _NANOS_PER_SECOND)
        document["body"] = self.body
        if self.response_body:
            document["response_body"] = self.response_body
        if self.problem is not None:
            document["case"] = _parse_object_id(self.problem)
        document["ip"] = self.ip
        document["created_at"] = self.created_at
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> LogEntry:
        raw_id = document.get("_id")
        problem = document.get("case")
        return cls(
            id=None if raw_id is None else str(raw_id),
            user_id=document.get("user_id"),
            method=document.get("method", ""),
            path=document.get("path", ""),
            response_status=int(document.get("status", 0)),
            duration=document.get("duration", 0) / _NANOS_PER_SECOND,
            body=document.get("body", ""),
            response_body=document.get("response_body", ""),
            problem=None if problem is None else str(problem),
            ip=document.get("ip", ""),
            created_at=_utc(document.get("created_at") or _ZERO_TIME),
        )


@dataclass
class UserSolution:
    """A user's compile attempt as shown in their history."""

    id: str
    problem_id: str
    user_id: str
    code: str
    status: str
    submitted_at: str
    execution_time: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "problemId": self.problem_id,
            "userId": self.user_id,
            "code": self.code,
            "status": self.status,
            "submittedAt": self.submitted_at,
            "executionTime": self.execution_time,
        }


class LogsService:
    """Request log operations on the ``logs`` collection."""

    def __init__(self, db: Any) -> None:
        self.collection = db["logs"]

    def create_log(self, entry: LogEntry) -> str:
        """Store ``entry`` and return the id it was stored under."""
        logger.debug("Creating log entry for %s %s", entry.method, entry.path)
        result = self.collection.insert_one(entry.to_document())
        logger.debug("Log entry created: %s", result.inserted_id)
        return str(result.inserted_id)

    def get_logs_by_user_id(self, user_id: str) -> list[LogEntry]:
        return [LogEntry.from_document(doc) for doc in self.collection.find({"user_id": user_id})]

    def get_all_logs(self) -> list[LogEntry]:
        return [LogEntry.from_document(doc) for doc in self.collection.find({})]

    def get_log_by_hash(self, body_hash: str) -> LogEntry | None:
        """Return the entry whose body equals ``body_hash``, or None."""
        document = self.collection.find_one({"body": body_hash})
        return None if document is None else LogEntry.from_document(document)

    def get_user_solutions_by_problem(self, user_id: str, problem_id: str) -> list[UserSolution]:
        """The user's compile attempts on one problem, newest first."""
        query = {"user_id": user_id, "path": COMPILE_PATH, "case": _parse_object_id(problem_id)}
        return self._solutions(query, user_id, problem_id)

    def get_all_user_solutions(self, user_id: str) -> list[UserSolution]:
        """All of the user's compile attempts, newest first."""
        return self._solutions({"user_id": user_id, "path": COMPILE_PATH}, user_id, None)

    def _solutions(
        self, query: dict[str, Any], user_id: str, problem_id: str | None
    ) -> list[UserSolution]:
        solutions = []
        for document in self.collection.find(query, sort=_NEWEST_FIRST):
            try:
                entry = LogEntry.from_document(document)
            except (TypeError, ValueError):
                continue
            solutions.append(
                UserSolution(
                    id=entry.id or _ZERO_ID,
                    problem_id=problem_id if problem_id is not None else entry.problem or _ZERO_ID,
                    user_id=user_id,
                    code=entry.body,
                    status=solution_status(entry.response_body),
                    submitted_at=_rfc3339(entry.created_at),
                    execution_time=format_duration(entry.duration),
                )
            )
        return solutions