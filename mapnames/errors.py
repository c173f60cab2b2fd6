from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, Optional, TypeVar, cast

FailureKind = Literal[
    "not_found",
    "unresolved_identity",
    "duplicate_identity",
    "marker_not_found",
    "subprocess_failure",
    "transient_io",
    "tool_missing",
]

T = TypeVar("T")


class MapNamesError(RuntimeError):
    kind: FailureKind = "not_found"

    def __init__(self, message: str, *, context: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            return f"[{self.context}] {self.message}"
        return self.message


class NotFound(MapNamesError):
    kind = "not_found"


class UnresolvedIdentity(MapNamesError):
    kind = "unresolved_identity"


class MarkerNotFound(MapNamesError):
    kind = "marker_not_found"


class AmbiguousMarker(MarkerNotFound):
    """More than one line matched a marker that must be unique."""


class SubprocessFailure(MapNamesError):
    kind = "subprocess_failure"

    def __init__(self, message: str, *, returncode: int, context: Optional[str] = None) -> None:
        super().__init__(message, context=context)
        self.returncode = returncode


class TransientIOFailure(MapNamesError):
    kind = "transient_io"


class ToolMissing(MapNamesError):
    kind = "tool_missing"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or a tagged failure."""

    value: Optional[T] = None
    kind: Optional[FailureKind] = None
    message: str = ""
    context: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, value: T, *, message: str = "") -> "Outcome[T]":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, kind: FailureKind, message: str, *, context: Optional[str] = None) -> "Outcome[T]":
        return cls(kind=kind, message=message, context=context)

    @classmethod
    def from_error(cls, err: MapNamesError) -> "Outcome[T]":
        return cls(kind=err.kind, message=err.message, context=err.context)

    def unwrap(self) -> T:
        if not self.ok:
            raise MapNamesError(f"{self.kind}: {self.message}", context=self.context)
        return cast(T, self.value)
