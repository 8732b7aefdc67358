"""Compile outcome types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass, field

from .bytecode import BytecodeProgram
from .errors import CompileError


@dataclass(frozen=True)
class CompileResult:
    """Outcome of an all-or-nothing compile: a program or the error that stopped it."""

    program: BytecodeProgram | None = None
    error: CompileError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, program: BytecodeProgram) -> CompileResult:
        return cls(program=program)

    @classmethod
    def failure(cls, error: CompileError) -> CompileResult:
        return cls(error=error)


@dataclass(frozen=True)
class CompileReport:
    """Outcome of a statement-by-statement compile.

    ``program`` holds the code of every top-level statement that compiled;
    each failing statement contributes one entry to ``errors`` and nothing
    to the program.
    """

    program: BytecodeProgram
    errors: list[CompileError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
