"""Disassembler — bytecode → human-readable instruction listing."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from pydantic import BaseModel

from .bytecode import (
    JUMP_OPCODES,
    BytecodeProgram,
    Opcode,
    instruction_width,
    opcode_for_word,
)
from .config_types import DisassemblerConfig
from .context import Context
from .values import Value
from . import constants

logger = logging.getLogger(__name__)

UNKNOWN_MNEMONIC = "UNKNOWN"


class DecodedInstruction(BaseModel):
    """One row of a disassembly listing."""

    offset: int
    words: list[int]
    opcode: Opcode | None = None
    operand: str = ""
    diagnostic: str | None = None

    @property
    def mnemonic(self) -> str:
        return self.opcode.name if self.opcode is not None else UNKNOWN_MNEMONIC

    def __str__(self) -> str:
        return self.render()

    def render(self, digits: int = 2) -> str:
        """Format the row with each word as *digits* hex digits."""
        raw = " ".join(f"{w:0{digits}x}" for w in self.words)
        operand = self.operand if self.diagnostic is None else f"<{self.diagnostic}>"
        raw_width = 2 * digits + 1
        return f"{self.offset:04d}  {raw:<{raw_width}}  {self.mnemonic:<13}  {operand}".rstrip()


class Disassembler:
    """Linear forward decoder over a finished code buffer.

    Decoding never raises on malformed input: unknown opcodes, dangling
    constant indices, unnamed slots and truncated instructions become
    diagnostics and decoding carries on. The Context is only read.
    """

    def __init__(
        self,
        code: Sequence[int],
        constant_pool: Sequence[Value],
        context: Context,
        config: DisassemblerConfig = DisassemblerConfig(),
    ):
        self._code = code
        self._constants = constant_pool
        self._context = context
        self._config = config
        self.diagnostics: list[str] = []
        self._OPERAND_RENDERERS: dict[Opcode, Callable[[int], str | None]] = {
            Opcode.CONST: self._render_constant,
            Opcode.LOAD_CONTEXT: self._render_slot,
            Opcode.SET_CONTEXT: self._render_slot,
            Opcode.JUMP: self._render_target,
            Opcode.JUMP_IF_FALSE: self._render_target,
        }

    @classmethod
    def for_program(
        cls,
        program: BytecodeProgram,
        context: Context,
        config: DisassemblerConfig = DisassemblerConfig(),
    ) -> Disassembler:
        return cls(program.code, program.constants, context, config)

    def disassemble(self) -> str:
        """Render the whole buffer as a header line plus one row per instruction.

        The Bytes column is sized from the widest word in the buffer so rows
        stay aligned when operands exceed one byte.
        """
        digits = max([2, *(len(f"{w:x}") for w in self._code)])
        rows = [constants.DISASM_HEADER]
        rows.extend(inst.render(digits) for inst in self.decode())
        return "\n".join(rows)

    def decode(self) -> list[DecodedInstruction]:
        self.diagnostics = []
        decoded: list[DecodedInstruction] = []
        ip = 0
        while ip < len(self._code):
            inst, ip = self.disassemble_instruction(ip)
            decoded.append(inst)
        return decoded

    def disassemble_instruction(self, ip: int) -> tuple[DecodedInstruction, int]:
        """Decode the instruction at *ip*; return it with the next instruction pointer."""
        word = self._code[ip]
        opcode = opcode_for_word(word)
        if opcode is None or (
            opcode in JUMP_OPCODES and not self._config.recognize_jumps
        ):
            return self._unknown(ip, word), ip + 1

        width = instruction_width(opcode)
        if ip + width > len(self._code):
            diagnostic = f"truncated {opcode.name} at offset {ip}"
            self._report(diagnostic)
            inst = DecodedInstruction(
                offset=ip,
                words=list(self._code[ip:]),
                opcode=opcode,
                diagnostic=diagnostic,
            )
            return inst, len(self._code)

        words = list(self._code[ip : ip + width])
        if width == 1:
            return DecodedInstruction(offset=ip, words=words, opcode=opcode), ip + 1

        operand = self._OPERAND_RENDERERS[opcode](words[1])
        if operand is None:
            diagnostic = f"invalid {opcode.name} operand {words[1]}"
            self._report(diagnostic)
            inst = DecodedInstruction(
                offset=ip, words=words, opcode=opcode, diagnostic=diagnostic
            )
        else:
            inst = DecodedInstruction(
                offset=ip, words=words, opcode=opcode, operand=operand
            )
        return inst, ip + width

    def _unknown(self, ip: int, word: int) -> DecodedInstruction:
        diagnostic = f"unknown opcode 0x{word:02x}"
        self._report(f"{diagnostic} at offset {ip}")
        return DecodedInstruction(offset=ip, words=[word], diagnostic=diagnostic)

    def _report(self, diagnostic: str):
        logger.warning("[Disassemble] %s", diagnostic)
        self.diagnostics.append(diagnostic)

    # ── operand renderers ────────────────────────────────────────

    def _render_constant(self, index: int) -> str | None:
        if not 0 <= index < len(self._constants):
            return None
        return f"({self._constants[index]})"

    def _render_slot(self, slot: int) -> str | None:
        name = self._context.get_variable_name(slot)
        if name is None:
            return None
        return f"({name})"

    def _render_target(self, target: int) -> str | None:
        if not 0 <= target < len(self._code):
            return None
        return f"-> {target:04d}"
