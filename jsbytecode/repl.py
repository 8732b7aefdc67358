"""Interactive compile session sharing one Context across inputs."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from .api import disassemble_program, try_compile_source
from .bytecode import BytecodeProgram
from .config_types import CompilerConfig, DisassemblerConfig
from .context import Context
from .result_types import CompileResult
from . import constants

logger = logging.getLogger(__name__)


def count_braces_delta(line: str) -> int:
    """Net ``{`` minus ``}`` on *line*, ignoring braces inside string literals."""
    delta = 0
    quote = ""
    escaped = False
    for ch in line:
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = ""
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch == "{":
            delta += 1
        elif ch == "}":
            delta -= 1
    return delta


class ReplSession:
    """Compiles each submitted snippet as its own program.

    Variables declared by earlier snippets stay visible to later ones. A
    snippet that fails to compile leaves the Context as it was.
    """

    def __init__(
        self,
        compiler_config: CompilerConfig = CompilerConfig(),
        disassembler_config: DisassemblerConfig = DisassemblerConfig(),
    ):
        self.context = Context()
        self.programs: list[BytecodeProgram] = []
        self._compiler_config = compiler_config
        self._disassembler_config = disassembler_config

    def submit(self, source: str) -> CompileResult:
        config = replace(self._compiler_config, name=f"input_{len(self.programs)}")
        result = try_compile_source(source, self.context, config)
        if result.ok:
            self.programs.append(result.program)
        else:
            logger.debug("Rejected input: %s", result.error)
        return result

    def render(self, result: CompileResult) -> str:
        if not result.ok:
            return f"Compile error [{result.error.kind.value}]: {result.error}"
        return disassemble_program(
            result.program, self.context, self._disassembler_config
        )

    def run(
        self,
        read_line: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
    ):
        buffer_lines: list[str] = []
        brace_depth = 0
        while True:
            prompt = constants.REPL_PROMPT if not buffer_lines else "... "
            try:
                line = read_line(prompt)
            except (EOFError, KeyboardInterrupt):
                write("")
                return

            stripped = line.strip()
            if not buffer_lines and stripped in constants.REPL_QUIT_COMMANDS:
                return
            if not stripped and not buffer_lines:
                continue

            buffer_lines.append(line)
            brace_depth += count_braces_delta(line)
            if brace_depth > 0:
                continue

            source = "\n".join(buffer_lines) + "\n"
            buffer_lines = []
            brace_depth = 0
            write(self.render(self.submit(source)))
