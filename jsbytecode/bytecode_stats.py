"""Pure functions for computing statistics over compiled bytecode."""

from __future__ import annotations

from collections import Counter

from jsbytecode.bytecode import BytecodeProgram


def count_opcodes(program: BytecodeProgram) -> dict[str, int]:
    """Return a frequency map of opcode names in the given program.

    Args:
        program: A compiled program. Its code is decoded with the shared
            arity table, so operand words are never counted as opcodes.

    Returns:
        A dict mapping opcode name strings to their occurrence counts.
    """
    return dict(Counter(inst.opcode.name for inst in program.instructions()))
