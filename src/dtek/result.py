"""Success/failure union used by every fallible operation.

``Ok`` wraps a value, ``Err`` wraps a ``DtekError``. Callers branch with
``isinstance`` (or ``result.ok``) instead of catching exceptions.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> Literal[True]:
        return True


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> Literal[False]:
        return False


Result = Union[Ok[T], Err[E]]


def is_result(value: Any) -> bool:
    return isinstance(value, (Ok, Err))


def map_result(result: "Result[T, E]", fn: Callable[[T], U]) -> "Result[U, E]":
    """Apply ``fn`` to the success value, pass failures through."""
    if isinstance(result, Ok):
        return Ok(fn(result.value))
    return result


def and_then(result: "Result[T, E]", fn: Callable[[T], "Result[U, E]"]) -> "Result[U, E]":
    """Chain a fallible step onto a success value."""
    if isinstance(result, Ok):
        return fn(result.value)
    return result
