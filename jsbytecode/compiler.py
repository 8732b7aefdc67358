"""Compiler — tree-sitter JavaScript AST → stack-VM bytecode."""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Callable, Iterator

from .bytecode import OPCODE_ARITY, BytecodeProgram, Opcode
from .config_types import CompilerConfig
from .context import Context
from .errors import CompileError, CompileErrorKind, SourcePosition
from .literals import (
    UnpairedSurrogateError,
    decode_string_literal,
    is_bigint_literal,
    parse_number_literal,
)
from .result_types import CompileReport
from .values import Value, ValueTag
from . import constants

logger = logging.getLogger(__name__)

COMMENT_TYPES: frozenset[str] = frozenset({"comment", "hash_bang_line"})

BINARY_OPCODES: dict[str, Opcode] = {
    "+": Opcode.ADD,
    "-": Opcode.SUB,
    "*": Opcode.MUL,
    "/": Opcode.DIV,
    "===": Opcode.EQ,
}


class ConstantPool:
    """Ordered constant pool with per-tag deduplication.

    Numbers and strings are looked up by ``(tag, value)`` so a match is only
    ever found within one tag. Booleans are always appended.
    """

    def __init__(self):
        self._values: list[Value] = []
        self._index: dict[tuple[ValueTag, float | str], int] = {}

    def __len__(self) -> int:
        return len(self._values)

    def values(self) -> tuple[Value, ...]:
        return tuple(self._values)

    def add_number(self, number: float) -> int:
        # NaN never compares equal, so it never matches an existing entry.
        if math.isnan(number):
            return self._append(Value.number(number))
        return self._lookup_or_append(Value.number(number))

    def add_string(self, text: str) -> int:
        return self._lookup_or_append(Value.string(text))

    def add_boolean(self, flag: bool) -> int:
        return self._append(Value.boolean(flag))

    def truncate(self, size: int) -> None:
        """Drop every entry at index >= *size*."""
        del self._values[size:]
        self._index = {
            key: idx for key, idx in self._index.items() if idx < size
        }

    def _lookup_or_append(self, value: Value) -> int:
        key = (value.tag, value.value)
        existing = self._index.get(key)
        if existing is not None:
            return existing
        idx = self._append(value)
        self._index[key] = idx
        return idx

    def _append(self, value: Value) -> int:
        self._values.append(value)
        return len(self._values) - 1


class Compiler:
    """Walks a tree-sitter JavaScript tree and emits bytecode.

    One instance owns its code buffer and constant pool for the duration of
    a pass and is the only writer to the injected ``Context``.
    """

    def __init__(self, context: Context, config: CompilerConfig = CompilerConfig()):
        self._context = context
        self._config = config
        self._code: list[int] = []
        self._pool = ConstantPool()
        self._source: bytes = b""
        self._depth: int = 0
        self._STMT_DISPATCH: dict[str, Callable] = {
            "expression_statement": self._compile_expression_statement,
            "lexical_declaration": self._compile_lexical_declaration,
            "variable_declaration": self._reject_declaration,
            "function_declaration": self._reject_declaration,
            "generator_function_declaration": self._reject_declaration,
            "class_declaration": self._reject_declaration,
            "if_statement": self._compile_if,
            "empty_statement": self._compile_empty,
            "statement_block": self._compile_block,
        }
        self._EXPR_DISPATCH: dict[str, Callable] = {
            "number": self._compile_number,
            "true": self._compile_boolean,
            "false": self._compile_boolean,
            "string": self._compile_string,
            "binary_expression": self._compile_binary,
            "identifier": self._compile_identifier,
            "parenthesized_expression": self._compile_paren,
        }
        self._PATTERN_DISPATCH: dict[str, Callable] = {
            "identifier": self._bind_identifier,
            "array_pattern": self._bind_array_pattern,
            "object_pattern": self._bind_object_pattern,
        }

    # ── entry points ─────────────────────────────────────────────

    def compile(self, tree, source: bytes) -> BytecodeProgram:
        """Compile a whole program, raising ``CompileError`` on the first failure.

        On failure every slot the pass defined is removed from the Context.
        """
        self._reset(source)
        checkpoint = self._context.checkpoint()
        try:
            root = tree.root_node
            self._check_syntax(root)
            for stmt in self._named_children(root):
                self._compile_stmt(stmt)
        except CompileError as err:
            self._context.rollback(checkpoint)
            logger.info("Compilation of %s failed: %s", self._config.name, err)
            raise
        return self._finish()

    def compile_statements(self, tree, source: bytes) -> CompileReport:
        """Compile top-level statements independently.

        A failing statement is rolled back (code, constant pool and Context)
        and reported; the remaining statements still compile.
        """
        self._reset(source)
        errors: list[CompileError] = []
        for stmt in self._named_children(tree.root_node):
            code_size = len(self._code)
            pool_size = len(self._pool)
            checkpoint = self._context.checkpoint()
            try:
                self._check_syntax(stmt)
                self._compile_stmt(stmt)
            except CompileError as err:
                del self._code[code_size:]
                self._pool.truncate(pool_size)
                self._context.rollback(checkpoint)
                logger.warning("Skipping statement: %s", err)
                errors.append(err)
        return CompileReport(program=self._finish(), errors=errors)

    def _reset(self, source: bytes):
        self._code = []
        self._pool = ConstantPool()
        self._source = source
        self._depth = 0

    def _finish(self) -> BytecodeProgram:
        self._emit(Opcode.HALT)
        program = BytecodeProgram(
            name=self._config.name,
            code=tuple(self._code),
            constants=self._pool.values(),
        )
        logger.info(
            "Compiled %s: %d words, %d constants",
            program.name,
            len(program.code),
            len(program.constants),
        )
        return program

    # ── helpers ──────────────────────────────────────────────────

    def _emit(self, opcode: Opcode, *operands: int) -> int:
        """Append one instruction and return its offset."""
        if len(operands) != OPCODE_ARITY[opcode]:
            raise ValueError(
                f"{opcode.name} takes {OPCODE_ARITY[opcode]} operand(s), got {len(operands)}"
            )
        offset = len(self._code)
        self._code.append(opcode.value)
        self._code.extend(operands)
        logger.debug("%04d %s %s", offset, opcode.name, list(operands))
        return offset

    def _emit_jump(self, opcode: Opcode) -> int:
        """Emit a jump with a placeholder target; return the operand position."""
        return self._emit(opcode, constants.JUMP_PLACEHOLDER) + 1

    def _patch_jump(self, operand_pos: int):
        """Point the jump operand at *operand_pos* to the current end of code."""
        self._code[operand_pos] = len(self._code)
        logger.debug("Patched operand %d -> %d", operand_pos, len(self._code))

    def _node_text(self, node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    def _position(self, node) -> SourcePosition:
        row, col = node.start_point
        return SourcePosition(line=row + 1, column=col)

    def _error(self, kind: CompileErrorKind, message: str, node) -> CompileError:
        return CompileError(kind, message, self._position(node))

    def _named_children(self, node) -> list:
        return [c for c in node.named_children if c.type not in COMMENT_TYPES]

    def _check_syntax(self, node):
        if not node.has_error:
            return
        culprit = self._find_error_node(node) or node
        raise self._error(
            CompileErrorKind.SYNTAX_ERROR,
            f"Syntax error near '{self._node_text(culprit)[:40]}'",
            culprit,
        )

    def _find_error_node(self, node):
        # Explicit stack: error subtrees can be nested far deeper than the
        # interpreter's recursion limit.
        pending = [node]
        while pending:
            current = pending.pop()
            if current.type == "ERROR" or current.is_missing:
                return current
            pending.extend(
                reversed(
                    [c for c in current.children if c.has_error or c.is_missing]
                )
            )
        return None

    @contextmanager
    def _nested(self, node) -> Iterator[None]:
        self._depth += 1
        try:
            if self._depth > self._config.max_depth:
                raise self._error(
                    CompileErrorKind.NESTING_TOO_DEEP,
                    f"Nesting exceeds {self._config.max_depth} levels",
                    node,
                )
            yield
        finally:
            self._depth -= 1

    # ── statements ───────────────────────────────────────────────

    def _compile_stmt(self, node):
        handler = self._STMT_DISPATCH.get(node.type)
        if handler is None:
            raise self._error(
                CompileErrorKind.UNSUPPORTED_STATEMENT,
                f"Unsupported statement: {node.type}",
                node,
            )
        with self._nested(node):
            handler(node)

    def _compile_expression_statement(self, node):
        self._compile_expr(self._named_children(node)[0])

    def _compile_block(self, node):
        for stmt in self._named_children(node):
            self._compile_stmt(stmt)

    def _compile_empty(self, node):
        if self._config.empty_statement_emits_halt:
            self._emit(Opcode.HALT)

    def _compile_if(self, node):
        cond_node = node.child_by_field_name("condition")
        body_node = node.child_by_field_name("consequence")
        alt_node = node.child_by_field_name("alternative")

        self._compile_expr(cond_node)
        false_slot = self._emit_jump(Opcode.JUMP_IF_FALSE)
        self._compile_stmt(body_node)
        end_slot = self._emit_jump(Opcode.JUMP)
        self._patch_jump(false_slot)
        if alt_node is not None:
            self._compile_stmt(self._else_body(alt_node))
        self._patch_jump(end_slot)

    def _else_body(self, alt_node):
        if alt_node.type != "else_clause":
            return alt_node
        return self._named_children(alt_node)[0]

    # ── declarations / binding patterns ──────────────────────────

    def _reject_declaration(self, node):
        kind = node.type
        if node.type == "variable_declaration":
            kind = "var"
        raise self._error(
            CompileErrorKind.UNSUPPORTED_DECLARATION,
            f"Unsupported declaration: {kind}",
            node,
        )

    def _compile_lexical_declaration(self, node):
        kind_node = node.child_by_field_name("kind") or node.children[0]
        kind = self._node_text(kind_node)
        if kind != constants.LET_KIND:
            raise self._error(
                CompileErrorKind.UNSUPPORTED_DECLARATION,
                f"Unsupported declaration: {kind}",
                node,
            )
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            self._compile_binding(
                declarator.child_by_field_name("name"),
                declarator.child_by_field_name("value"),
            )

    def _compile_binding(self, pattern, init):
        handler = self._PATTERN_DISPATCH.get(pattern.type)
        if handler is None:
            raise self._error(
                CompileErrorKind.UNSUPPORTED_PATTERN,
                f"Unsupported binding pattern: {pattern.type}",
                pattern,
            )
        with self._nested(pattern):
            handler(pattern, init)

    def _bind_identifier(self, node, init):
        self._bind_name(self._node_text(node), init)

    def _bind_name(self, name: str, init):
        slot = self._context.define_variable(name)
        if init is not None:
            self._compile_expr(init)
            self._emit(Opcode.SET_CONTEXT, slot)

    def _bind_array_pattern(self, node, init):
        # Every element is bound to the whole initializer, not to init[i].
        for element in self._named_children(node):
            self._compile_binding(element, init)

    def _bind_object_pattern(self, node, init):
        for prop in self._named_children(node):
            if prop.type == "shorthand_property_identifier_pattern":
                self._bind_name(self._node_text(prop), init)
            elif prop.type == "pair_pattern":
                self._bind_name(self._property_key_name(prop), init)
            else:
                raise self._error(
                    CompileErrorKind.UNSUPPORTED_PATTERN,
                    f"Unsupported object pattern property: {prop.type}",
                    prop,
                )

    def _property_key_name(self, pair_node) -> str:
        key = pair_node.child_by_field_name("key")
        if key.type == "property_identifier":
            return self._node_text(key)
        if key.type == "computed_property_name":
            raise self._error(
                CompileErrorKind.UNSUPPORTED_PATTERN,
                "Computed property key not supported",
                key,
            )
        raise self._error(
            CompileErrorKind.UNSUPPORTED_PATTERN,
            f"Unsupported property key: {key.type}",
            key,
        )

    # ── expressions ──────────────────────────────────────────────

    def _compile_expr(self, node):
        handler = self._EXPR_DISPATCH.get(node.type)
        if handler is None:
            raise self._error(
                CompileErrorKind.UNSUPPORTED_EXPRESSION,
                f"Unsupported expression: {node.type}",
                node,
            )
        with self._nested(node):
            handler(node)

    def _compile_paren(self, node):
        self._compile_expr(self._named_children(node)[0])

    def _compile_number(self, node):
        text = self._node_text(node)
        if is_bigint_literal(text):
            raise self._error(
                CompileErrorKind.UNSUPPORTED_EXPRESSION,
                f"BigInt literal not supported: {text}",
                node,
            )
        try:
            number = parse_number_literal(text)
        except ValueError as err:
            raise self._error(
                CompileErrorKind.SYNTAX_ERROR, f"Invalid number literal: {text}", node
            ) from err
        self._emit(Opcode.CONST, self._pool.add_number(number))

    def _compile_boolean(self, node):
        self._emit(Opcode.CONST, self._pool.add_boolean(node.type == "true"))

    def _compile_string(self, node):
        text = self._node_text(node)
        try:
            decoded = decode_string_literal(text)
        except UnpairedSurrogateError as err:
            raise self._error(
                CompileErrorKind.UNSUPPORTED_EXPRESSION,
                f"Unpaired surrogate in string literal: {text}",
                node,
            ) from err
        except ValueError as err:
            raise self._error(
                CompileErrorKind.SYNTAX_ERROR, f"Invalid string literal: {text}", node
            ) from err
        self._emit(Opcode.CONST, self._pool.add_string(decoded))

    def _compile_binary(self, node):
        self._compile_expr(node.child_by_field_name("left"))
        self._compile_expr(node.child_by_field_name("right"))
        op = self._node_text(node.child_by_field_name("operator"))
        opcode = BINARY_OPCODES.get(op)
        if opcode is None:
            raise self._error(
                CompileErrorKind.UNSUPPORTED_OPERATOR,
                f"Unsupported binary operator: {op}",
                node,
            )
        self._emit(opcode)

    def _compile_identifier(self, node):
        name = self._node_text(node)
        slot = self._context.get_variable_index(name)
        if slot is not None:
            self._emit(Opcode.LOAD_CONTEXT, slot)
            return
        if self._context.is_global_variable(name):
            raise self._error(
                CompileErrorKind.UNSUPPORTED_CONSTRUCT,
                f"{name} is not supported yet",
                node,
            )
        raise self._error(
            CompileErrorKind.UNBOUND_IDENTIFIER,
            f"ReferenceError: {name} is not defined",
            node,
        )
