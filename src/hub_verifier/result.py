"""
Result values shared by the verification pipeline.

A result is either a success carrying content or a failure carrying one or
more human-readable messages. Components return results instead of raising
so that a batch loop can branch on each item.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ResponseStatus(Enum):
    """Outcome classification for remote calls."""

    OK = "ok"
    ERROR_RETRY = "error_retry"
    FATAL_ERROR = "fatal_error"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success with content, or failure with messages."""

    content: T | None = None
    failure_messages: tuple[str, ...] = ()

    @classmethod
    def success(cls, content: T | None = None) -> Result[T]:
        return cls(content=content)

    @classmethod
    def failure(cls, *messages: str) -> Result[T]:
        if not messages:
            raise ValueError("A failed result needs at least one message")
        return cls(failure_messages=tuple(messages))

    @property
    def succeeded(self) -> bool:
        return not self.failure_messages

    @property
    def failed(self) -> bool:
        return bool(self.failure_messages)

    @property
    def failure_detail(self) -> str:
        """All failure messages joined into one line."""
        return ", ".join(self.failure_messages)


@dataclass(frozen=True)
class StatusResult(Result[T]):
    """Result of a remote call, classified by ResponseStatus."""

    status: ResponseStatus = ResponseStatus.OK

    @classmethod
    def success(cls, content: T | None = None) -> StatusResult[T]:
        return cls(content=content, status=ResponseStatus.OK)

    @classmethod
    def failure(
        cls,
        *messages: str,
        status: ResponseStatus = ResponseStatus.FATAL_ERROR,
    ) -> StatusResult[T]:
        if not messages:
            raise ValueError("A failed result needs at least one message")
        if status == ResponseStatus.OK:
            raise ValueError("A failed result cannot carry status OK")
        return cls(failure_messages=tuple(messages), status=status)

    @property
    def fatal(self) -> bool:
        return self.status == ResponseStatus.FATAL_ERROR
