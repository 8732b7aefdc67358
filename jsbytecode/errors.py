"""Compile error types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CompileErrorKind(str, Enum):
    SYNTAX_ERROR = "SYNTAX_ERROR"
    UNSUPPORTED_STATEMENT = "UNSUPPORTED_STATEMENT"
    UNSUPPORTED_DECLARATION = "UNSUPPORTED_DECLARATION"
    UNSUPPORTED_EXPRESSION = "UNSUPPORTED_EXPRESSION"
    UNSUPPORTED_OPERATOR = "UNSUPPORTED_OPERATOR"
    UNSUPPORTED_PATTERN = "UNSUPPORTED_PATTERN"
    UNSUPPORTED_CONSTRUCT = "UNSUPPORTED_CONSTRUCT"
    UNBOUND_IDENTIFIER = "UNBOUND_IDENTIFIER"
    NESTING_TOO_DEEP = "NESTING_TOO_DEEP"


@dataclass(frozen=True)
class SourcePosition:
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class CompileError(Exception):
    """Fatal compile-time failure. No program is produced once raised."""

    def __init__(
        self,
        kind: CompileErrorKind,
        message: str,
        position: SourcePosition | None = None,
    ):
        self.kind = kind
        self.message = message
        self.position = position
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at {self.position})"
