"""Compiler / disassembler configuration types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass

from . import constants


@dataclass(frozen=True)
class CompilerConfig:
    """Groups compile-pass configuration."""

    name: str = constants.DEFAULT_PROGRAM_NAME
    max_depth: int = constants.DEFAULT_MAX_DEPTH
    # Legacy behaviour: an empty statement emits HALT.
    empty_statement_emits_halt: bool = False


@dataclass(frozen=True)
class DisassemblerConfig:
    """Groups disassembly configuration."""

    # When False, JUMP / JUMP_IF_FALSE are reported as unknown opcodes,
    # matching the legacy decoder.
    recognize_jumps: bool = True
