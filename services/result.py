"""
Result type for consistent error handling across services.

Services return a Result instead of raising for expected failures (a wrong
word, a lost race, a failed payout), so the command layer can map each
error code to its own message.

Usage:
    return Result.ok(outcome)
    return Result.fail("Not in the dictionary", code=INVALID_WORD)

    if result.success:
        send(result.value)
    else:
        send(MESSAGES[result.error_code])
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    A simple result type for service method return values.

    Attributes:
        success: Whether the operation succeeded
        value: The return value if successful
        error: Error message if failed
        error_code: Error code from services.error_codes if failed
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        return cls(success=False, error=error, error_code=code)

    def __bool__(self) -> bool:
        return self.success

    def unwrap(self) -> T:
        """
        Get the value of a successful result.

        Raises:
            ValueError: If the result is a failure
        """
        if not self.success:
            raise ValueError(f"Cannot unwrap failed result: {self.error}")
        return self.value  # type: ignore

    def unwrap_or(self, default: T) -> T:
        return self.value if self.success else default  # type: ignore

    def map(self, fn: Callable[[T], "Result"]) -> "Result":
        """Chain an operation onto a successful result; failures pass through."""
        if not self.success:
            return self
        return fn(self.value)
