"""
Result normalization: collapse whatever an operation returned into
value-or-failure.

Operations may return:

    None                      -> Value(None, present=True)
    an awaitable              -> awaited, then normalized again; if the
                                 operation is declared void (returns None
                                 by annotation) the completion carries no
                                 payload slot -> Value(None, present=False)
    ActionResult              -> its embedded outcome if set (normalized
                                 again), otherwise Value(its value)
    ObjectResult, 2xx status  -> Value(payload), payload may be None
    ObjectResult, other code  -> MarshallingFailure
    StatusResult / Response   -> MarshallingFailure (no payload slot)
    anything else             -> Value(raw)

Failure outcomes are never swallowed here: the invoker turns a
MarshallingFailure into an error for the MCP client.
"""

import inspect
from dataclasses import dataclass
from typing import Any

from starlette.responses import Response

from toolgate.outcomes import ActionResult, ObjectResult, StatusResult, is_success


@dataclass(frozen=True)
class Value:
    payload: Any
    present: bool = True


@dataclass(frozen=True)
class MarshallingFailure:
    outcome_kind: str


NormalizedResult = Value | MarshallingFailure


async def normalize(raw: Any, *, declared_void: bool = False) -> NormalizedResult:
    """
    Normalize one raw operation result.

    Args:
        raw: Whatever the operation returned
        declared_void: The operation's return annotation is None. Only then
                       does an awaited None mean "completed without a value";
                       otherwise it is a null payload.
    """
    # Nested wrappers (a coroutine returning an ActionResult holding an
    # ObjectResult) are peeled one layer per iteration.
    while True:
        match raw:
            case None:
                return Value(None)
            case ActionResult(result=None, value=value):
                return Value(value)
            case ActionResult(result=outcome):
                raw = outcome
            case ObjectResult(value=value, status_code=code) if is_success(code):
                return Value(value)
            case ObjectResult() | StatusResult():
                return MarshallingFailure(raw.kind)
            case Response():
                return MarshallingFailure(f"{type(raw).__name__}({raw.status_code})")
            case _ if inspect.isawaitable(raw):
                resolved = await raw
                if resolved is None:
                    return Value(None, present=not declared_void)
                raw = resolved
            case _:
                return Value(raw)
