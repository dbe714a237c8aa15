"""
Status-coded outcome wrappers that host operations may return.

Operations written for the HTTP side of the host often return a status-coded
outcome instead of a bare value. The shapes mirror what a web handler would
produce:

- ObjectResult: a status code plus a payload slot (the payload may be None)
- StatusResult: a status code with no payload slot at all
- ActionResult: either a direct value or an embedded outcome

The tool bridge unwraps these in toolgate.results.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ObjectResult:
    value: Any = None
    status_code: int = 200

    @property
    def kind(self) -> str:
        return f"ObjectResult({self.status_code})"


@dataclass(frozen=True)
class StatusResult:
    status_code: int

    @property
    def kind(self) -> str:
        return f"StatusResult({self.status_code})"


Outcome = ObjectResult | StatusResult


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """
    Dual-shape return value: a direct payload or an embedded outcome.

    When `result` is set it takes precedence and `value` is ignored.
    """

    value: T | None = None
    result: Outcome | None = None


def is_success(status_code: int) -> bool:
    """True for 2xx status codes."""
    return 200 <= status_code < 300


def ok(value: Any = None) -> ObjectResult:
    """200 with a payload (None is a valid payload)."""
    return ObjectResult(value, 200)


def created(value: Any) -> ObjectResult:
    """201 with the created resource as payload."""
    return ObjectResult(value, 201)


def no_content() -> StatusResult:
    """204, a success outcome that carries no payload."""
    return StatusResult(204)


def bad_request(value: Any = None) -> Outcome:
    """400, with a payload when one is given and as a bare status otherwise."""
    return StatusResult(400) if value is None else ObjectResult(value, 400)


def not_found(value: Any = None) -> Outcome:
    """404, with a payload when one is given and as a bare status otherwise."""
    return StatusResult(404) if value is None else ObjectResult(value, 404)
