"""Bytecode model — opcodes, the shared arity table and the program container."""

from __future__ import annotations

from enum import IntEnum
from typing import Iterator, NamedTuple

from pydantic import BaseModel, ConfigDict

from .values import Value
from .constants import DEFAULT_PROGRAM_NAME, JUMP_PLACEHOLDER


class Opcode(IntEnum):
    HALT = 0
    CONST = 1
    ADD = 2
    SUB = 3
    MUL = 4
    DIV = 5
    EQ = 6
    JUMP = 7
    JUMP_IF_FALSE = 8
    LOAD_CONTEXT = 9
    SET_CONTEXT = 10


# Trailing operand words per opcode. Shared by the compiler and the decoder.
OPCODE_ARITY: dict[Opcode, int] = {
    Opcode.HALT: 0,
    Opcode.CONST: 1,
    Opcode.ADD: 0,
    Opcode.SUB: 0,
    Opcode.MUL: 0,
    Opcode.DIV: 0,
    Opcode.EQ: 0,
    Opcode.JUMP: 1,
    Opcode.JUMP_IF_FALSE: 1,
    Opcode.LOAD_CONTEXT: 1,
    Opcode.SET_CONTEXT: 1,
}

JUMP_OPCODES: frozenset[Opcode] = frozenset({Opcode.JUMP, Opcode.JUMP_IF_FALSE})
SLOT_OPCODES: frozenset[Opcode] = frozenset(
    {Opcode.LOAD_CONTEXT, Opcode.SET_CONTEXT}
)

_OPCODES_BY_WORD: dict[int, Opcode] = {op.value: op for op in Opcode}


def opcode_for_word(word: int) -> Opcode | None:
    """Return the opcode whose numeric identity is *word*, or None."""
    return _OPCODES_BY_WORD.get(word)


def instruction_width(opcode: Opcode) -> int:
    return 1 + OPCODE_ARITY[opcode]


class BytecodeError(Exception):
    """Raised when a bytecode buffer violates the instruction format."""


class Instruction(NamedTuple):
    offset: int
    opcode: Opcode
    operand: int | None


class BytecodeProgram(BaseModel):
    """An immutable compiled unit: flat code words plus the constant pool."""

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="strings")

    name: str = DEFAULT_PROGRAM_NAME
    code: tuple[int, ...] = ()
    constants: tuple[Value, ...] = ()

    def instructions(self) -> Iterator[Instruction]:
        """Decode ``code`` into instructions using the shared arity table.

        Raises ``BytecodeError`` on an unknown opcode word or a truncated
        trailing instruction.
        """
        ip = 0
        while ip < len(self.code):
            opcode = opcode_for_word(self.code[ip])
            if opcode is None:
                raise BytecodeError(f"Unknown opcode {self.code[ip]} at offset {ip}")
            width = instruction_width(opcode)
            if ip + width > len(self.code):
                raise BytecodeError(
                    f"Truncated {opcode.name} at offset {ip}: "
                    f"needs {width} words, {len(self.code) - ip} left"
                )
            operand = self.code[ip + 1] if width > 1 else None
            yield Instruction(offset=ip, opcode=opcode, operand=operand)
            ip += width

    def verify(self) -> None:
        """Check the program invariants, raising ``BytecodeError`` on the first violation."""
        if not self.code or self.code[-1] != Opcode.HALT.value:
            raise BytecodeError("Program does not end with HALT")
        for inst in self.instructions():
            if inst.opcode in JUMP_OPCODES:
                if inst.operand == JUMP_PLACEHOLDER:
                    raise BytecodeError(
                        f"Unpatched {inst.opcode.name} at offset {inst.offset}"
                    )
                if not 0 <= inst.operand < len(self.code):
                    raise BytecodeError(
                        f"{inst.opcode.name} at offset {inst.offset} targets "
                        f"{inst.operand}, outside code of length {len(self.code)}"
                    )
            elif inst.opcode == Opcode.CONST:
                if not 0 <= inst.operand < len(self.constants):
                    raise BytecodeError(
                        f"CONST at offset {inst.offset} references constant "
                        f"{inst.operand}, pool has {len(self.constants)}"
                    )
