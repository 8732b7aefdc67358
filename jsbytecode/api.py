"""Composable API functions for the compile / disassemble pipelines.

Each function corresponds to a CLI workflow (listing, --json, --stats) but is
callable programmatically without argparse.
"""

from __future__ import annotations

import logging

from .bytecode import BytecodeProgram
from .bytecode_stats import count_opcodes
from .compiler import Compiler
from .config_types import CompilerConfig, DisassemblerConfig
from .context import Context
from .disassembler import Disassembler
from .errors import CompileError
from .parser import Parser
from .result_types import CompileReport, CompileResult

logger = logging.getLogger(__name__)


def compile_source(
    source: str,
    context: Context | None = None,
    config: CompilerConfig = CompilerConfig(),
) -> BytecodeProgram:
    """Parse and compile JavaScript source to a bytecode program.

    Args:
        source: The source code text.
        context: Scope table to allocate slots in. A fresh one is used when
            omitted.
        config: Compiler configuration.

    Returns:
        The compiled program.

    Raises:
        CompileError: If any statement cannot be compiled.
    """
    logger.info("Compiling source (%d bytes)", len(source))
    tree = Parser().parse(source)
    compiler = Compiler(context if context is not None else Context(), config)
    return compiler.compile(tree, source.encode("utf-8"))


def try_compile_source(
    source: str,
    context: Context | None = None,
    config: CompilerConfig = CompilerConfig(),
) -> CompileResult:
    """Like ``compile_source`` but returns the error instead of raising it."""
    try:
        return CompileResult.success(compile_source(source, context, config))
    except CompileError as err:
        return CompileResult.failure(err)


def compile_source_statements(
    source: str,
    context: Context | None = None,
    config: CompilerConfig = CompilerConfig(),
) -> CompileReport:
    """Compile each top-level statement independently, collecting errors."""
    tree = Parser().parse(source)
    compiler = Compiler(context if context is not None else Context(), config)
    return compiler.compile_statements(tree, source.encode("utf-8"))


def disassemble_program(
    program: BytecodeProgram,
    context: Context,
    config: DisassemblerConfig = DisassemblerConfig(),
) -> str:
    """Render a compiled program as a text listing."""
    return Disassembler.for_program(program, context, config).disassemble()


def disassemble_source(
    source: str,
    compiler_config: CompilerConfig = CompilerConfig(),
    disassembler_config: DisassemblerConfig = DisassemblerConfig(),
) -> str:
    """Compile source and return its disassembly listing.

    Args:
        source: The source code text.
        compiler_config: Compiler configuration.
        disassembler_config: Disassembler configuration.

    Returns:
        A multi-line listing with a header and one row per instruction.
    """
    context = Context()
    program = compile_source(source, context, compiler_config)
    return disassemble_program(program, context, disassembler_config)


def dump_bytecode(source: str, config: CompilerConfig = CompilerConfig()) -> str:
    """Compile source and return the program serialized as JSON."""
    return compile_source(source, config=config).model_dump_json(indent=2)


def bytecode_stats(source: str, config: CompilerConfig = CompilerConfig()) -> dict[str, int]:
    """Compile source and return opcode frequency counts.

    Args:
        source: The source code text.
        config: Compiler configuration.

    Returns:
        A dict mapping opcode name strings to their occurrence counts.
    """
    return count_opcodes(compile_source(source, config=config))
