"""
Basic parsing tests for the Tiny Language
Tests the grammar and the shape of the concrete syntax tree
"""

import time

import pytest
from parsing import (
  CSTNode,
  TinyGrammar,
  create_debug_parser,
  create_parser,
  cst_to_dict,
  find_nodes_by_type,
  pretty_print_cst,
)
from config import TinyLangConfig
from error_handling import SourceTooLarge, TrailingInput, UnexpectedToken
from utilities import line_and_column, line_offsets


class TestBasicParsing:
  """Test basic parsing functionality"""

  @pytest.fixture
  def parser(self):
    """Provide a fresh parser instance for each test"""
    return create_parser()

  def test_empty_program(self, parser):
    cst = parser.parse_string("").unwrap()
    assert cst.type == "program"
    assert cst.children == []

  def test_whitespace_only_program(self, parser):
    cst = parser.parse_string("  \n\t \n").unwrap()
    assert cst.children == []

  def test_simple_assignment(self, parser):
    cst = parser.parse_string("answer = 42;").unwrap()
    assert len(cst.children) == 1

    statement = cst.children[0]
    assert statement.type == "statement"
    assignment, semicolon = statement.children
    assert assignment.type == "assignment"
    assert semicolon.type == "punct"
    assert semicolon.value == ";"

    name, equals, expression = assignment.children
    assert name.type == "identifier"
    assert name.value == "answer"
    assert equals.value == "="
    assert expression.type == "expression"

  def test_multiple_statements(self, parser):
    cst = parser.parse_string("x = 1; y = 2;").unwrap()
    assert len(cst.children) == 2
    names = [node.value for node in find_nodes_by_type(cst, "identifier")]
    assert names == ["x", "y"]

  def test_expression_statement(self, parser):
    cst = parser.parse_string("42;").unwrap()
    statement = cst.children[0]
    assert statement.children[0].type == "expression"

  def test_bare_identifier_is_expression(self, parser):
    """'x;' backtracks out of assignment into an expression"""
    cst = parser.parse_string("x;").unwrap()
    statement = cst.children[0]
    assert statement.children[0].type == "expression"
    assert find_nodes_by_type(statement, "identifier")[0].value == "x"

  def test_underscore_identifiers(self, parser):
    cst = parser.parse_string("_tmp_value = 1;").unwrap()
    assert find_nodes_by_type(cst, "identifier")[0].value == "_tmp_value"

  def test_statements_without_whitespace(self, parser):
    cst = parser.parse_string("a=1;b=a*2;").unwrap()
    assert len(cst.children) == 2


class TestOperatorStructure:
  """Test how operator chains appear in the concrete tree"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def _expression(self, parser, source):
    cst = parser.parse_string(source).unwrap()
    return cst.children[0].children[0]

  def test_additive_chain_is_flat(self, parser):
    expression = self._expression(parser, "1 + 2 - 3;")
    types = [child.type for child in expression.children]
    assert types == ["term", "add_op", "term", "add_op", "term"]
    ops = [child.value for child in expression.children if child.type == "add_op"]
    assert ops == ["+", "-"]

  def test_multiplication_binds_tighter(self, parser):
    """'2 + 3 * 4' has two terms; the second holds the product"""
    expression = self._expression(parser, "2 + 3 * 4;")
    left, op, right = expression.children
    assert op.value == "+"
    assert len(left.children) == 1
    assert [child.type for child in right.children] == ["factor", "mul_op", "factor"]

  def test_parentheses_keep_expression(self, parser):
    """'(2 + 3) * 4' has a single term whose first factor is grouped"""
    expression = self._expression(parser, "(2 + 3) * 4;")
    assert len(expression.children) == 1
    term = expression.children[0]
    grouped = term.children[0]
    assert [child.type for child in grouped.children] == ["punct", "expression", "punct"]

  def test_nested_parentheses(self, parser):
    expression = self._expression(parser, "((((1))));")
    assert len(find_nodes_by_type(expression, "expression")) == 5
    assert find_nodes_by_type(expression, "number")[0].value == "1"


class TestSourceSpans:
  """Test source locations recorded on CST nodes"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_leaf_spans(self, parser):
    cst = parser.parse_string("foo = 12;").unwrap()
    name = find_nodes_by_type(cst, "identifier")[0]
    number = find_nodes_by_type(cst, "number")[0]
    assert (name.span.start, name.span.end) == (0, 3)
    assert (number.span.start, number.span.end) == (6, 8)
    assert number.text == "12"

  def test_branch_span_covers_children(self, parser):
    cst = parser.parse_string("  x = 1 + 2 ;").unwrap()
    statement = cst.children[0]
    assert statement.span.start == 2
    assert statement.span.end == 13
    assert statement.text == "x = 1 + 2 ;"

  def test_multiline_positions(self, parser):
    cst = parser.parse_string("a = 1;\nbb = 2;").unwrap()
    second = cst.children[1]
    assert second.span.start_line == 2
    assert second.span.start_col == 1
    assert str(second.span) == "2:1-8"

  def test_tabs_are_not_expanded(self, parser):
    cst = parser.parse_string("\tx = 1;").unwrap()
    assert cst.children[0].span.start == 1

  def test_large_program_positions(self, parser):
    count = 3000
    source = "a = 1;\n" + "a = a + 1;\n" * count
    started = time.monotonic()
    cst = parser.parse_string(source).unwrap()
    assert time.monotonic() - started < 30
    last = cst.children[-1]
    assert len(cst.children) == count + 1
    assert (last.span.start_line, last.span.start_col) == (count + 1, 1)
    assert (last.span.end_line, last.span.end_col) == (count + 1, 11)


class TestLineAndColumn:
  """Test offset -> line/column conversion"""

  def test_positions(self):
    text = "ab\ncd\n\ne"
    assert line_and_column(text, 0) == (1, 1)
    assert line_and_column(text, 2) == (1, 3)
    assert line_and_column(text, 3) == (2, 1)
    assert line_and_column(text, 6) == (3, 1)
    assert line_and_column(text, 7) == (4, 1)
    assert line_and_column(text, 8) == (4, 2)

  def test_position_is_clamped(self):
    assert line_and_column("ab", -5) == (1, 1)
    assert line_and_column("ab", 99) == (1, 3)

  def test_line_offsets(self):
    assert line_offsets("") == (0,)
    assert line_offsets("a\nb\n") == (0, 2, 4)

  def test_lookups_do_not_rescan_the_text(self):
    text = "x = 1;\n" * 200000
    started = time.monotonic()
    for position in range(0, len(text), 7):
      line_and_column(text, position)
    assert time.monotonic() - started < 10
    assert line_and_column(text, len(text) - 1) == (200000, 7)


class TestParseErrors:
  """Test the errors reported for malformed input"""

  @pytest.fixture
  def parser(self):
    return create_parser()

  def test_missing_factor(self, parser):
    result = parser.parse_string("x = ;")
    assert not result.ok
    error = result.error
    assert isinstance(error, UnexpectedToken)
    assert error.position == 4
    assert error.found == ";"
    assert "factor" in error.expected

  def test_missing_semicolon(self, parser):
    error = parser.parse_string("x = 1").error
    assert isinstance(error, UnexpectedToken)
    assert error.position == 5
    assert error.found == "end of input"
    assert "';'" in error.expected
    assert "Every statement must end with ';'" in error.suggestions

  def test_missing_operand_after_operator(self, parser):
    error = parser.parse_string("y = 1 + ;").error
    assert isinstance(error, UnexpectedToken)
    assert error.position == 8

  def test_unclosed_parenthesis(self, parser):
    error = parser.parse_string("(1 + 2;").error
    assert isinstance(error, UnexpectedToken)
    assert error.position == 6
    assert error.found == ";"

  def test_unary_minus_rejected(self, parser):
    error = parser.parse_string("x = -1;").error
    assert isinstance(error, UnexpectedToken)
    assert error.found == "-"
    assert any("Unary minus" in s for s in error.suggestions)

  def test_uppercase_identifier_rejected(self, parser):
    error = parser.parse_string("X = 1;").error
    assert isinstance(error, TrailingInput)
    assert error.position == 0

  def test_digit_in_identifier(self, parser):
    error = parser.parse_string("x1 = 2;").error
    assert isinstance(error, UnexpectedToken)
    assert error.found == "1"
    assert error.position == 1

  def test_trailing_input(self, parser):
    error = parser.parse_string("x = 1; )").error
    assert isinstance(error, TrailingInput)
    assert error.position == 7
    assert error.found == ")"

  def test_error_line_and_column(self, parser):
    error = parser.parse_string("a = 1;\nb = * 2;").error
    assert isinstance(error, UnexpectedToken)
    assert (error.line, error.column) == (2, 5)
    assert error.position == 11

  def test_unwrap_raises_parse_error(self, parser):
    with pytest.raises(UnexpectedToken):
      parser.parse_string("x = ;").unwrap()

  def test_source_length_limit(self):
    parser = create_parser(config=TinyLangConfig(max_source_length=5))
    error = parser.parse_string("x = 12345;").error
    assert isinstance(error, SourceTooLarge)
    assert error.length == 10
    assert error.limit == 5

  def test_source_at_limit_accepted(self):
    parser = create_parser(config=TinyLangConfig(max_source_length=6))
    assert parser.parse_string("x = 1;").ok


class TestCstUtilities:
  """Test CST helper functions"""

  def test_pretty_print(self):
    cst = create_parser().parse_string("x = 1;").unwrap()
    text = pretty_print_cst(cst)
    lines = text.splitlines()
    assert lines[0] == "program"
    assert "    assignment" in lines
    assert "      identifier('x')" in lines

  def test_cst_to_dict(self):
    cst = create_parser().parse_string("7;").unwrap()
    data = cst_to_dict(cst)
    assert data["type"] == "program"
    number = data["children"][0]["children"][0]["children"][0]["children"][0]["children"][0]
    assert number == {
      "type": "number",
      "value": "7",
      "span": {"start": 0, "end": 1, "start_line": 1, "start_col": 1,
               "end_line": 1, "end_col": 2},
      "children": [],
    }

  def test_debug_parser_logs(self, caplog):
    parser = create_debug_parser()
    with caplog.at_level("DEBUG", logger="parsing"):
      assert parser.parse_string("x = 1;").ok
    assert "Parsed <input>: 1 statements" in caplog.text

  def test_grammar_elements_are_reusable(self):
    grammar = TinyGrammar()
    result = grammar.expression.parse_string("1 + 2")
    node = result[0]
    assert isinstance(node, CSTNode)
    assert node.type == "expression"

  def test_parse_file(self, test_data_dir):
    cst = create_parser().parse_file(str(test_data_dir / "powers.tl")).unwrap()
    assert len(cst.children) == 7

  def test_parse_missing_file_raises(self, tmp_path):
    with pytest.raises(FileNotFoundError):
      create_parser().parse_file(str(tmp_path / "missing.tl"))
