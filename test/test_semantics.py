"""
Lowering tests for the Tiny Language
Tests the concrete tree -> AST translation
"""

import pytest
from config import TinyLangConfig
from error_handling import LiteralOverflow, ParseError
from parsing import CSTNode, create_parser
from semantics import (
  Assignment,
  BinaryOp,
  BinaryOperator,
  ExpressionStatement,
  Literal,
  Program,
  Variable,
  analyze_program,
  create_analyzer,
  create_debug_analyzer,
  format_expression,
  parse,
  pretty_print_ast,
)


def add(left, right):
  return BinaryOp(BinaryOperator.ADD, left, right)


def sub(left, right):
  return BinaryOp(BinaryOperator.SUB, left, right)


def mul(left, right):
  return BinaryOp(BinaryOperator.MUL, left, right)


def div(left, right):
  return BinaryOp(BinaryOperator.DIV, left, right)


class TestLowering:
  """Test AST shapes produced by parse"""

  def test_empty_program(self):
    program = parse("").unwrap()
    assert program == Program(())
    assert len(program) == 0

  def test_assignment(self):
    program = parse("answer = 42;").unwrap()
    assert program.statements == (Assignment("answer", Literal(42)),)

  def test_two_assignments(self):
    program = parse("x = 1; y = 2;").unwrap()
    assert len(program) == 2
    assert [stmt.name for stmt in program] == ["x", "y"]

  def test_expression_statements(self):
    program = parse("42; x;").unwrap()
    assert program[0] == ExpressionStatement(Literal(42))
    assert program[1] == ExpressionStatement(Variable("x"))

  def test_precedence(self):
    program = parse("2 + 3 * 4;").unwrap()
    assert program[0].expression == add(Literal(2), mul(Literal(3), Literal(4)))

  def test_parentheses_change_shape(self):
    program = parse("(2 + 3) * 4;").unwrap()
    assert program[0].expression == mul(add(Literal(2), Literal(3)), Literal(4))

  def test_subtraction_is_left_associative(self):
    program = parse("a - b - c;").unwrap()
    expected = sub(sub(Variable("a"), Variable("b")), Variable("c"))
    assert program[0].expression == expected

  def test_division_is_left_associative(self):
    program = parse("8 / 4 / 2;").unwrap()
    assert program[0].expression == div(div(Literal(8), Literal(4)), Literal(2))

  def test_mixed_chain(self):
    program = parse("c = (a + b) * 3 - 4 / 2;").unwrap()
    expected = sub(
      mul(add(Variable("a"), Variable("b")), Literal(3)),
      div(Literal(4), Literal(2)),
    )
    assert program[0] == Assignment("c", expected)

  def test_grouping_collapses(self):
    assert parse("((7));").unwrap() == parse("7;").unwrap()

  def test_spans_do_not_affect_equality(self):
    assert parse("x=1;").unwrap() == parse("x   =   1 ;").unwrap()

  def test_binary_op_span(self):
    program = parse("z = 10 - 2 - 3;").unwrap()
    outer = program[0].value
    assert outer.span.text == "10 - 2 - 3"
    assert outer.left.span.text == "10 - 2"

  def test_program_is_immutable(self):
    program = parse("x = 1;").unwrap()
    with pytest.raises(AttributeError):
      program.statements = ()


class TestLiteralLimits:
  """Test integer literal range checking"""

  def test_max_literal_accepted(self):
    program = parse(f"{2**63 - 1};").unwrap()
    assert program[0].expression == Literal(2**63 - 1)

  def test_literal_overflow(self):
    error = parse(f"x = {2**63};").error
    assert isinstance(error, LiteralOverflow)
    assert isinstance(error, ParseError)
    assert error.literal == str(2**63)
    assert error.position == 4
    assert error.limit == 2**63 - 1

  def test_literal_overflow_with_narrow_width(self):
    config = TinyLangConfig(int_bits=8)
    assert parse("127;", config=config).ok
    error = parse("a = 1;\nb = 128;", filename="narrow.tl", config=config).error
    assert isinstance(error, LiteralOverflow)
    assert (error.line, error.column) == (2, 5)
    assert error.filename == "narrow.tl"

  def test_leading_zeros(self):
    assert parse("007;").unwrap()[0].expression == Literal(7)

  def test_very_long_literal_overflows(self):
    literal = "9" * 5000
    error = parse(f"x = {literal};").error
    assert isinstance(error, LiteralOverflow)
    assert error.literal == literal
    assert error.position == 4

  def test_very_long_leading_zeros(self):
    program = parse("0" * 5000 + "42;").unwrap()
    assert program[0].expression == Literal(42)

  def test_long_literal_with_narrow_width(self):
    config = TinyLangConfig(int_bits=8)
    assert isinstance(parse("1000;", config=config).error, LiteralOverflow)


class TestAnalyzer:
  """Test the analyzer used on its own"""

  def test_analyze_cst(self):
    cst = create_parser().parse_string("x = 1 + 2;").unwrap()
    program = create_analyzer().analyze(cst).unwrap()
    assert program[0] == Assignment("x", add(Literal(1), Literal(2)))

  def test_rejects_non_program_node(self):
    result = analyze_program(CSTNode("statement"))
    assert not result.ok
    assert isinstance(result.error, ParseError)

  def test_parse_errors_pass_through(self):
    result = parse("x = ;", filename="broken.tl")
    assert not result.ok
    assert result.error.filename == "broken.tl"


class TestAstUtilities:
  """Test AST rendering helpers"""

  def test_format_expression(self):
    program = parse("2 + 3 * x;").unwrap()
    assert format_expression(program[0].expression) == "(+ 2 (* 3 x))"

  def test_pretty_print_ast(self):
    program = parse("a = 3; a - 1;").unwrap()
    assert pretty_print_ast(program) == "1: Assignment a = 3\n2: Expression (- a 1)"

  def test_debug_analyzer_logs(self, caplog):
    cst = create_parser().parse_string("k = 2;").unwrap()
    with caplog.at_level("DEBUG", logger="semantics"):
      assert create_debug_analyzer().analyze(cst).ok
    assert "Lowered statement" in caplog.text
