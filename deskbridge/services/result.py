"""Outcome of a step that may fail without raising."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, code: str = "unknown") -> "Result[T]":
        return cls(ok=False, error=error, error_code=code)

    def unwrap(self) -> T:
        if not self.ok:
            raise ValueError(f"{self.error_code}: {self.error}")
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def __bool__(self) -> bool:
        return self.ok
