"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

DEFAULT_PROGRAM_NAME = "main"
SOURCE_LANGUAGE = "javascript"

# Operand stored in a jump slot until its target is known.
JUMP_PLACEHOLDER = -1

DEFAULT_MAX_DEPTH = 200

LET_KIND = "let"

DISASM_HEADER = "Offset  Bytes  Opcode  Operand"

REPL_PROMPT = "js> "
REPL_QUIT_COMMANDS: tuple[str, ...] = (":q", ":quit", "quit", "exit")

KNOWN_GLOBALS: frozenset[str] = frozenset(
    {
        "globalThis",
        "undefined",
        "NaN",
        "Infinity",
        "console",
        "Object",
        "Function",
        "Array",
        "String",
        "Number",
        "Boolean",
        "Symbol",
        "BigInt",
        "Math",
        "JSON",
        "Date",
        "RegExp",
        "Error",
        "TypeError",
        "RangeError",
        "SyntaxError",
        "ReferenceError",
        "Promise",
        "Map",
        "Set",
        "WeakMap",
        "WeakSet",
        "Reflect",
        "Proxy",
        "parseInt",
        "parseFloat",
        "isNaN",
        "isFinite",
        "eval",
    }
)
