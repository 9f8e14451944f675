"""Problems and their storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from bson import ObjectId

_ZERO_ID = "0" * 24
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _parse_object_id(text: str) -> ObjectId:
    if not isinstance(text, str) or len(text) != 24 or not ObjectId.is_valid(text):
        raise ValueError(f"invalid object id: {text!r}")
    return ObjectId(text)


def _aware(moment: datetime) -> datetime:
    return moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment


def _format_time(moment: datetime) -> str:
    """RFC 3339 with trimmed fractional seconds, ``Z`` for UTC."""
    moment = _aware(moment)
    text = moment.replace(microsecond=0, tzinfo=None).isoformat()
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


@dataclass
class TestCase:
    """One input/output pair of a problem."""

    __test__ = False

    input: str = ""
    output: str = ""


@dataclass
class ParamType:
    """A named, typed function parameter."""

    name: str = ""
    type: str = ""


@dataclass
class Problem:
    """A programming problem with its test cases."""

    id: str = _ZERO_ID
    title: str = ""
    description: str = ""
    difficulty: str = ""
    test_cases: list[TestCase] = field(default_factory=list)
    function_name: str = ""
    arguments: list[ParamType] = field(default_factory=list)
    created_at: datetime = _ZERO_TIME
    updated_at: datetime = _ZERO_TIME

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Problem:
        return cls(
            id=str(document.get("_id", _ZERO_ID)),
            title=document.get("title", ""),
            description=document.get("description", ""),
            difficulty=document.get("difficulty", ""),
            test_cases=[
                TestCase(case.get("input", ""), case.get("output", ""))
                for case in document.get("test_cases") or []
            ],
            function_name=document.get("function_name", ""),
            arguments=[
                ParamType(arg.get("name", ""), arg.get("type", ""))
                for arg in document.get("arguments") or []
            ],
            created_at=_aware(document.get("created_at") or _ZERO_TIME),
            updated_at=_aware(document.get("updated_at") or _ZERO_TIME),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "difficulty": self.difficulty,
            "test_cases": [{"input": c.input, "output": c.output} for c in self.test_cases],
            "function_name": self.function_name,
            "arguments": [{"name": a.name, "type": a.type} for a in self.arguments],
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
        }


class ProblemService:
    """Reads problems from the ``problems`` collection."""

    def __init__(self, db: Any) -> None:
        self.collection = db["problems"]

    def get_problem_by_id(self, problem_id: str) -> Problem:
        """Return the problem; ValueError for a bad id, LookupError if absent."""
        document = self.collection.find_one({"_id": _parse_object_id(problem_id)})
        if document is None:
            raise LookupError(f"problem {problem_id} not found")
        return Problem.from_document(document)

    def get_all_problems(self) -> list[Problem]:
        return [Problem.from_document(document) for document in self.collection.find({})]