"""Command-line entry point."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .api import compile_source, disassemble_program
from .bytecode_stats import count_opcodes
from .config_types import CompilerConfig, DisassemblerConfig
from .context import Context
from .errors import CompileError
from .repl import ReplSession

DEMO_SOURCE = """\
let x = 5;
if (x === 5) {
  x + 1;
} else {
  "other";
}
"""


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile a JavaScript subset to stack-VM bytecode and disassemble it"
    )
    parser.add_argument("file", nargs="?", help="Source file to compile")
    parser.add_argument(
        "--json", action="store_true", help="Print the compiled program as JSON"
    )
    parser.add_argument(
        "--stats", action="store_true", help="Print opcode frequency counts"
    )
    parser.add_argument(
        "--repl", action="store_true", help="Start an interactive compile session"
    )
    parser.add_argument(
        "--legacy-empty-halt",
        action="store_true",
        help="Emit HALT for empty statements",
    )
    parser.add_argument(
        "--legacy-jump-decoding",
        action="store_true",
        help="Report JUMP / JUMP_IF_FALSE as unknown opcodes when disassembling",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    compiler_config = CompilerConfig(empty_statement_emits_halt=args.legacy_empty_halt)
    disassembler_config = DisassemblerConfig(
        recognize_jumps=not args.legacy_jump_decoding
    )

    if args.repl:
        ReplSession(compiler_config, disassembler_config).run()
        return 0

    if not args.file:
        print("No file provided. Using built-in demo:\n")
        print(DEMO_SOURCE)
        source = DEMO_SOURCE
    else:
        with open(args.file, encoding="utf-8") as f:
            source = f.read()

    context = Context()
    try:
        program = compile_source(source, context, compiler_config)
    except CompileError as err:
        print(f"Compile error [{err.kind.value}]: {err}", file=sys.stderr)
        return 1

    if args.json:
        print(program.model_dump_json(indent=2))
    elif args.stats:
        print(json.dumps(count_opcodes(program), indent=2))
    else:
        print(disassemble_program(program, context, disassembler_config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
