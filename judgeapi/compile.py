"""Compile results and the response sent back to clients."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

SUCCESS = "Success"
FAILED = "Failed"
ERROR = "Error"


@dataclass
class CompileResult:
    """The outcome of one test case."""

    status: str
    output: list[int] = field(default_factory=list)
    expected_output: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "output": list(self.output),
            "expectedOutput": list(self.expected_output),
        }


@dataclass
class CompileResponse:
    """The overall outcome of a compile request."""

    result: list[CompileResult] = field(default_factory=list)
    error: str = ""
    status: str = ""
    line: int = 0
    column: int = 0

    def to_dict(self) -> dict[str, Any]:
        """JSON form; empty result, status, line and column are left out."""
        data: dict[str, Any] = {}
        if self.result:
            data["result"] = [item.to_dict() for item in self.result]
        data["error"] = self.error
        if self.status:
            data["status"] = self.status
        if self.line:
            data["line"] = self.line
        if self.column:
            data["column"] = self.column
        return data


def generate_response(output: Sequence[int], expected_output: Sequence[int]) -> CompileResponse:
    """Compare outputs with expected outputs pairwise and build a response."""
    if len(expected_output) < len(output):
        raise ValueError("fewer expected outputs than outputs")
    results = [
        CompileResult(SUCCESS if got == want else FAILED, [got], [want])
        for got, want in zip(output, expected_output)
    ]
    status = SUCCESS if all(item.status == SUCCESS for item in results) else ERROR
    return CompileResponse(result=results, status=status)