"""Result type for use case return values

Use cases never raise across their boundary; they return either
``Return.ok(value)`` or ``Return.err(Error(...))``.
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Error(BaseModel):
    code: str
    message: str
    reason: Optional[str] = None


class Result(Generic[T]):
    __slots__ = ("_value", "_error")

    def __init__(self, value: Optional[T] = None, error: Optional[Error] = None):
        self._value = value
        self._error = error

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        if self._error is not None:
            raise ValueError(f"Result holds an error: {self._error.code}")
        return self._value

    @property
    def error(self) -> Optional[Error]:
        return self._error

    def __repr__(self) -> str:
        if self.is_ok():
            return f"Result.ok({self._value!r})"
        return f"Result.err({self._error!r})"


class Return:
    @staticmethod
    def ok(value: T = None) -> Result[T]:
        return Result(value=value)

    @staticmethod
    def err(error: Error) -> Result:
        return Result(error=error)
