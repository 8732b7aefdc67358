"""Tests for Compiler — tree-sitter JavaScript AST to bytecode."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from tree_sitter_language_pack import get_parser

from jsbytecode.bytecode import BytecodeProgram, Opcode
from jsbytecode.compiler import Compiler, ConstantPool
from jsbytecode.config_types import CompilerConfig
from jsbytecode.context import Context
from jsbytecode.errors import CompileError, CompileErrorKind
from jsbytecode.values import Value
from jsbytecode import constants

CONST = Opcode.CONST
ADD = Opcode.ADD
EQ = Opcode.EQ
HALT = Opcode.HALT
JUMP = Opcode.JUMP
JUMP_IF_FALSE = Opcode.JUMP_IF_FALSE
LOAD = Opcode.LOAD_CONTEXT
SET = Opcode.SET_CONTEXT


def _compile_js(
    source: str,
    context: Context | None = None,
    config: CompilerConfig = CompilerConfig(),
) -> BytecodeProgram:
    parser = get_parser("javascript")
    tree = parser.parse(source.encode("utf-8"))
    compiler = Compiler(context if context is not None else Context(), config)
    return compiler.compile(tree, source.encode("utf-8"))


def _compile_error(source: str, context: Context | None = None) -> CompileError:
    with pytest.raises(CompileError) as excinfo:
        _compile_js(source, context)
    return excinfo.value


class _StubNode:
    """Just enough of a tree-sitter node for the syntax-error search."""

    def __init__(self, node_type: str, children: list | None = None):
        self.type = node_type
        self.children = children or []
        self.is_missing = False
        self.has_error = node_type == "ERROR" or any(c.has_error for c in self.children)
        self.start_byte = 0
        self.end_byte = 1
        self.start_point = (0, 0)


class TestScenarios:
    def test_addition(self):
        program = _compile_js("1 + 2")
        assert list(program.constants) == [Value.number(1), Value.number(2)]
        assert list(program.code) == [CONST, 0, CONST, 1, ADD, HALT]

    def test_let_then_compare_reuses_constant(self):
        program = _compile_js("let x = 5; x === 5")
        assert list(program.constants) == [Value.number(5)]
        assert list(program.code) == [CONST, 0, SET, 0, LOAD, 0, CONST, 0, EQ, HALT]

    def test_if_without_alternate(self):
        program = _compile_js("if (true) { 1 }")
        assert list(program.constants) == [Value.boolean(True), Value.number(1)]
        halt_index = len(program.code) - 1
        assert list(program.code) == [
            CONST, 0,
            JUMP_IF_FALSE, halt_index,
            CONST, 1,
            JUMP, halt_index,
            HALT,
        ]

    def test_unsupported_expression_produces_no_program(self):
        err = _compile_error("foo();")
        assert err.kind == CompileErrorKind.UNSUPPORTED_EXPRESSION
        assert "call_expression" in err.message


class TestProgramShape:
    def test_empty_program_is_single_halt(self):
        program = _compile_js("")
        assert list(program.code) == [HALT]
        assert program.constants == ()

    def test_program_name_comes_from_config(self):
        program = _compile_js("1;", config=CompilerConfig(name="unit"))
        assert program.name == "unit"

    def test_default_program_name(self):
        assert _compile_js("1;").name == constants.DEFAULT_PROGRAM_NAME

    def test_comments_are_skipped(self):
        program = _compile_js("// leading\n1; /* trailing */")
        assert list(program.code) == [CONST, 0, HALT]

    def test_program_is_immutable(self):
        program = _compile_js("1;")
        with pytest.raises(Exception):
            program.name = "other"

    def test_compiled_program_verifies(self):
        program = _compile_js(
            'let a = 1; if (a === 1) { if (false) { "x" } else { a + 2 } } else { 3 }'
        )
        program.verify()


class TestConstantDeduplication:
    def test_booleans_are_never_deduplicated(self):
        program = _compile_js("true; true; false; true;")
        assert list(program.constants) == [
            Value.boolean(True),
            Value.boolean(True),
            Value.boolean(False),
            Value.boolean(True),
        ]
        assert list(program.code) == [CONST, 0, CONST, 1, CONST, 2, CONST, 3, HALT]

    def test_numbers_are_deduplicated(self):
        program = _compile_js("7; 8; 7; 8;")
        assert list(program.constants) == [Value.number(7), Value.number(8)]
        assert list(program.code) == [CONST, 0, CONST, 1, CONST, 0, CONST, 1, HALT]

    def test_numbers_compare_by_value_not_text(self):
        program = _compile_js("16; 0x10; 1.6e1; 16.0;")
        assert list(program.constants) == [Value.number(16)]

    def test_strings_are_deduplicated_after_unescaping(self):
        program = _compile_js("'a'; \"a\"; \"\\x61\";")
        assert list(program.constants) == [Value.string("a")]

    def test_dedup_never_crosses_tags(self):
        program = _compile_js('1; "1"; 1; "1";')
        assert list(program.constants) == [Value.number(1), Value.string("1")]
        assert list(program.code) == [CONST, 0, CONST, 1, CONST, 0, CONST, 1, HALT]

    def test_boolean_does_not_match_number(self):
        program = _compile_js("1; true; 1;")
        assert list(program.constants) == [Value.number(1), Value.boolean(True)]

    def test_string_escape_sequences_are_decoded(self):
        program = _compile_js('"a\\nb";')
        assert program.constants[0].get_string() == "a\nb"


class TestConstantPool:
    def test_nan_is_never_matched(self):
        pool = ConstantPool()
        assert pool.add_number(float("nan")) == 0
        assert pool.add_number(float("nan")) == 1

    def test_negative_zero_matches_zero(self):
        pool = ConstantPool()
        assert pool.add_number(0.0) == pool.add_number(-0.0)

    def test_truncate_forgets_lookup_entries(self):
        pool = ConstantPool()
        pool.add_number(1)
        pool.add_string("x")
        pool.truncate(1)
        assert len(pool) == 1
        assert pool.add_string("x") == 1


class TestIfLowering:
    def test_if_else_targets(self):
        program = _compile_js("if (false) 1; else 2;")
        assert list(program.constants) == [
            Value.boolean(False),
            Value.number(1),
            Value.number(2),
        ]
        # 0: CONST 0 | 2: JUMP_IF_FALSE 8 | 4: CONST 1 | 6: JUMP 10 | 8: CONST 2 | 10: HALT
        assert list(program.code) == [
            CONST, 0,
            JUMP_IF_FALSE, 8,
            CONST, 1,
            JUMP, 10,
            CONST, 2,
            HALT,
        ]

    def test_false_branch_lands_on_alternate_start(self):
        program = _compile_js('if (true) { 1; 2; } else { "b"; }')
        false_target = program.code[3]
        assert program.code[false_target] == CONST
        alternate_constant = program.constants[program.code[false_target + 1]]
        assert alternate_constant == Value.string("b")

    def test_true_branch_jumps_past_alternate(self):
        program = _compile_js('if (true) { 1; } else { "b"; } 3;')
        jump_offset = 6
        assert program.code[jump_offset] == JUMP
        end_target = program.code[jump_offset + 1]
        assert list(program.code[end_target:]) == [CONST, 3, HALT]

    def test_else_if_chain_has_no_placeholders(self):
        program = _compile_js("if (false) 1; else if (true) 2; else 3;")
        jump_operands = [
            inst.operand
            for inst in program.instructions()
            if inst.opcode in (JUMP, JUMP_IF_FALSE)
        ]
        assert len(jump_operands) == 4
        assert constants.JUMP_PLACEHOLDER not in jump_operands
        assert all(0 <= t < len(program.code) for t in jump_operands)

    def test_parenthesized_test_expression(self):
        program = _compile_js("if ((1 === 1)) {}")
        assert list(program.code[:5]) == [CONST, 0, CONST, 0, EQ]


class TestStatements:
    def test_empty_statement_emits_nothing(self):
        program = _compile_js("1;;2;")
        assert list(program.code) == [CONST, 0, CONST, 1, HALT]

    def test_legacy_empty_statement_emits_halt(self):
        config = CompilerConfig(empty_statement_emits_halt=True)
        program = _compile_js(";", config=config)
        assert list(program.code) == [HALT, HALT]

    def test_block_shares_scope(self):
        context = Context()
        program = _compile_js("{ let a = 1; } a;", context)
        assert list(program.code) == [CONST, 0, SET, 0, LOAD, 0, HALT]

    def test_while_is_unsupported(self):
        err = _compile_error("while (true) {}")
        assert err.kind == CompileErrorKind.UNSUPPORTED_STATEMENT

    def test_for_loop_is_unsupported(self):
        assert _compile_error("for (;;) {}").kind == CompileErrorKind.UNSUPPORTED_STATEMENT


class TestDeclarations:
    def test_let_without_initializer_allocates_slot_only(self):
        context = Context()
        program = _compile_js("let x;", context)
        assert list(program.code) == [HALT]
        assert context.get_variable_index("x") == 0

    def test_multiple_declarators(self):
        context = Context()
        program = _compile_js("let x = 1, y = x;", context)
        assert list(program.code) == [CONST, 0, SET, 0, LOAD, 0, SET, 1, HALT]
        assert context.get_variable_index("y") == 1

    def test_one_slot_per_binding_and_reads_use_it(self):
        context = Context()
        program = _compile_js("let a = 1; let b = 2; b; a;", context)
        assert context.slot_count == 2
        loads = [i.operand for i in program.instructions() if i.opcode == LOAD]
        assert loads == [context.get_variable_index("b"), context.get_variable_index("a")]

    def test_redeclaration_gets_fresh_slot(self):
        context = Context()
        program = _compile_js("let x = 1; let x = 2; x;", context)
        assert context.slot_count == 2
        assert list(program.code[-3:]) == [LOAD, 1, HALT]

    @pytest.mark.parametrize(
        "source",
        ["const x = 1;", "var x = 1;", "function f() {}", "class A {}"],
        ids=["const", "var", "function", "class"],
    )
    def test_other_declarations_are_rejected(self, source):
        assert _compile_error(source).kind == CompileErrorKind.UNSUPPORTED_DECLARATION


class TestBindingPatterns:
    def test_array_pattern_reuses_initializer_per_element(self):
        context = Context()
        program = _compile_js("let [a, b] = 7;", context)
        assert list(program.code) == [CONST, 0, SET, 0, CONST, 0, SET, 1, HALT]
        assert context.get_variable_name(0) == "a"
        assert context.get_variable_name(1) == "b"

    def test_array_pattern_skips_holes(self):
        context = Context()
        _compile_js("let [, a] = 1;", context)
        assert context.slot_count == 1

    def test_nested_array_pattern(self):
        context = Context()
        _compile_js("let [a, [b, c]] = 1;", context)
        assert [context.get_variable_name(i) for i in range(3)] == ["a", "b", "c"]

    def test_object_pattern_binds_property_keys(self):
        context = Context()
        program = _compile_js('let {p, q: r} = "s";', context)
        assert list(program.constants) == [Value.string("s")]
        assert list(program.code) == [CONST, 0, SET, 0, CONST, 0, SET, 1, HALT]
        assert context.get_variable_index("p") == 0
        assert context.get_variable_index("q") == 1
        assert context.get_variable_index("r") is None

    def test_pattern_without_initializer(self):
        context = Context()
        program = _compile_js("let [a, b];", context)
        assert list(program.code) == [HALT]
        assert context.slot_count == 2

    @pytest.mark.parametrize(
        "source",
        [
            "let [a = 1] = 2;",
            "let {a = 1} = 2;",
            "let {[k]: v} = 1;",
            "let [...rest] = 1;",
            'let {"k": v} = 1;',
        ],
        ids=["array-default", "object-default", "computed-key", "rest", "string-key"],
    )
    def test_unsupported_patterns(self, source):
        assert _compile_error(source).kind == CompileErrorKind.UNSUPPORTED_PATTERN

    def test_computed_key_message(self):
        assert "Computed property key" in _compile_error("let {[k]: v} = 1;").message


class TestExpressions:
    @pytest.mark.parametrize(
        "op, opcode",
        [("+", Opcode.ADD), ("-", Opcode.SUB), ("*", Opcode.MUL), ("/", Opcode.DIV), ("===", Opcode.EQ)],
    )
    def test_binary_operators(self, op, opcode):
        program = _compile_js(f"4 {op} 2;")
        assert list(program.code) == [CONST, 0, CONST, 1, opcode, HALT]

    def test_left_operand_compiled_first(self):
        program = _compile_js("1 - (2 - 3);")
        assert list(program.code) == [
            CONST, 0, CONST, 1, CONST, 2, Opcode.SUB, Opcode.SUB, HALT
        ]

    @pytest.mark.parametrize("op", ["%", "==", "!==", "<", "&&", "**"])
    def test_unsupported_operators(self, op):
        assert _compile_error(f"1 {op} 2;").kind == CompileErrorKind.UNSUPPORTED_OPERATOR

    def test_operand_errors_take_precedence_over_operator(self):
        assert _compile_error("f() % 2;").kind == CompileErrorKind.UNSUPPORTED_EXPRESSION

    @pytest.mark.parametrize(
        "source", ["-1;", "[1];", "({});", "`t`;", "x => x;", "null;", "1, 2;", "10n;"]
    )
    def test_unsupported_expressions(self, source):
        assert _compile_error(source).kind == CompileErrorKind.UNSUPPORTED_EXPRESSION

    def test_unpaired_surrogate_in_string(self):
        err = _compile_error('"\\uD800";')
        assert err.kind == CompileErrorKind.UNSUPPORTED_EXPRESSION
        assert "surrogate" in err.message

    def test_surrogate_pair_in_string(self):
        program = _compile_js('"\\uD83D\\uDE00";')
        assert program.constants[0].get_string() == "\U0001F600"


class TestIdentifierResolution:
    def test_unbound_identifier(self):
        err = _compile_error("y;")
        assert err.kind == CompileErrorKind.UNBOUND_IDENTIFIER
        assert err.message == "ReferenceError: y is not defined"

    def test_known_global_is_reported_as_unsupported(self):
        err = _compile_error("console;")
        assert err.kind == CompileErrorKind.UNSUPPORTED_CONSTRUCT
        assert err.message == "console is not supported yet"

    def test_custom_globals(self):
        context = Context(known_globals=frozenset({"host"}))
        assert _compile_error("host;", context).kind == CompileErrorKind.UNSUPPORTED_CONSTRUCT
        assert _compile_error("console;", context).kind == CompileErrorKind.UNBOUND_IDENTIFIER

    def test_identifier_bound_by_earlier_pass(self):
        context = Context()
        context.define_variable("seed", 3)
        program = _compile_js("seed;", context)
        assert list(program.code) == [LOAD, 0, HALT]

    def test_error_position(self):
        err = _compile_error("1;\n  y;")
        assert (err.position.line, err.position.column) == (2, 2)
        assert str(err).endswith("(at 2:2)")


class TestFailureIsAtomic:
    def test_failure_rolls_back_context(self):
        context = Context()
        _compile_error("let a = 1; let b = foo();", context)
        assert context.slot_count == 0
        assert context.get_variable_index("a") is None

    def test_failure_keeps_slots_from_earlier_passes(self):
        context = Context()
        _compile_js("let a = 1;", context)
        _compile_error("let b = 2; nope;", context)
        assert context.slot_count == 1
        assert context.get_variable_index("a") == 0

    def test_syntax_error(self):
        assert _compile_error("1 +;").kind == CompileErrorKind.SYNTAX_ERROR

    def test_deeply_nested_syntax_error(self):
        source = "(" * 3000 + "1 +" + ")" * 3000 + ";"
        assert _compile_error(source).kind == CompileErrorKind.SYNTAX_ERROR

    def test_syntax_error_search_does_not_recurse(self):
        node = _StubNode("ERROR")
        for _ in range(5000):
            node = _StubNode("parenthesized_expression", [node])
        tree = SimpleNamespace(root_node=_StubNode("program", [node]))
        compiler = Compiler(Context())
        with pytest.raises(CompileError) as excinfo:
            compiler.compile(tree, b"(")
        assert excinfo.value.kind == CompileErrorKind.SYNTAX_ERROR

    def test_nesting_guard(self):
        parser = get_parser("javascript")
        source = "((((((((1))))))));"
        tree = parser.parse(source.encode("utf-8"))
        compiler = Compiler(Context(), CompilerConfig(max_depth=5))
        with pytest.raises(CompileError) as excinfo:
            compiler.compile(tree, source.encode("utf-8"))
        assert excinfo.value.kind == CompileErrorKind.NESTING_TOO_DEEP

    def test_default_depth_allows_ordinary_nesting(self):
        program = _compile_js("if (true) { if (true) { if (true) { ((1 + 2)) } } }")
        program.verify()


class TestCompileStatements:
    def _report(self, source: str, context: Context):
        parser = get_parser("javascript")
        tree = parser.parse(source.encode("utf-8"))
        return Compiler(context).compile_statements(tree, source.encode("utf-8"))

    def test_failing_statement_is_skipped(self):
        context = Context()
        report = self._report("let a = 1; foo(); let b = a;", context)
        assert not report.ok
        assert [e.kind for e in report.errors] == [CompileErrorKind.UNSUPPORTED_EXPRESSION]
        assert list(report.program.code) == [CONST, 0, SET, 0, LOAD, 0, SET, 1, HALT]

    def test_failing_statement_rolls_back_its_slots(self):
        context = Context()
        report = self._report("let a = foo(); let b = 1;", context)
        assert len(report.errors) == 1
        assert context.get_variable_index("a") is None
        assert context.get_variable_index("b") == 0

    def test_failing_statement_rolls_back_constants(self):
        report = self._report('1; "x" + foo(); "x";', Context())
        assert list(report.program.constants) == [Value.number(1), Value.string("x")]
        assert list(report.program.code) == [CONST, 0, CONST, 1, HALT]

    def test_all_statements_succeed(self):
        report = self._report("1; 2;", Context())
        assert report.ok
        report.program.verify()

    def test_multiple_errors_are_collected(self):
        report = self._report("x; 1 % 2; 3;", Context())
        assert [e.kind for e in report.errors] == [
            CompileErrorKind.UNBOUND_IDENTIFIER,
            CompileErrorKind.UNSUPPORTED_OPERATOR,
        ]
        assert list(report.program.code) == [CONST, 0, HALT]
