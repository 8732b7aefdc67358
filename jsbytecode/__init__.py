"""JavaScript subset → stack-VM bytecode compiler and disassembler."""

from .api import (  # noqa: F401
    compile_source,
    try_compile_source,
    compile_source_statements,
    disassemble_program,
    disassemble_source,
    dump_bytecode,
    bytecode_stats,
)
