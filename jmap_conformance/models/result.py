"""Models for check execution results."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

type Status = Literal["passed", "failed", "skipped"]


@dataclass(frozen=True, kw_only=True)
class Exchange:
    """A recorded HTTP request/response pair, kept for diagnostics."""

    method: str
    url: str
    request_body: Any = None
    status: int
    response_body: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the report's request/response shape."""
        request: dict[str, Any] = {"method": self.method, "url": self.url}
        if self.request_body is not None:
            request["body"] = self.request_body
        response: dict[str, Any] = {"status": self.status}
        if self.response_body is not None:
            response["body"] = self.response_body
        return {"request": request, "response": response}


@dataclass(frozen=True, kw_only=True)
class TestResult:
    """Outcome of a single check.

    Carries the descriptor's identity so the report can be rendered without
    going back to the catalog.
    """

    __test__ = False

    test_id: str
    name: str
    rfc: str
    section: str
    required: bool
    status: Status
    duration_ms: int
    error: str | None = None
    exchanges: Sequence[Exchange] = ()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase report entry."""
        data: dict[str, Any] = {
            "testId": self.test_id,
            "name": self.name,
            "rfc": self.rfc,
            "section": self.section,
            "required": self.required,
            "status": self.status,
            "durationMs": self.duration_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.exchanges:
            data["exchanges"] = [exchange.to_dict() for exchange in self.exchanges]
        return data
