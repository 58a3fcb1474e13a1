"""
Tiny Language Semantics - lowering from concrete syntax tree to AST
Punctuation and grouping disappear here; operator chains become left-folded
binary trees and number tokens become checked integer literals
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union

from config import DEFAULT_CONFIG, TinyLangConfig
from error_handling import LiteralOverflow, ParseError
from parsing import CSTNode, SourceSpan, create_parser
from utilities import Err, Ok, Result, collect_results, map_result, max_decimal_digits

logger = logging.getLogger(__name__)


# ============================================================================
# AST NODES (closed set, immutable)
# ============================================================================

class BinaryOperator(Enum):
  ADD = "+"
  SUB = "-"
  MUL = "*"
  DIV = "/"

  @classmethod
  def from_symbol(cls, symbol: str) -> "BinaryOperator":
    return cls(symbol)


# Spans are diagnostics only and never take part in equality

@dataclass(frozen=True)
class Literal:
  value: int
  span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Variable:
  name: str
  span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BinaryOp:
  op: BinaryOperator
  left: "Expression"
  right: "Expression"
  span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


Expression = Union[Literal, Variable, BinaryOp]


@dataclass(frozen=True)
class Assignment:
  name: str
  value: Expression
  span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ExpressionStatement:
  expression: Expression
  span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


Statement = Union[Assignment, ExpressionStatement]


@dataclass(frozen=True)
class Program:
  statements: Tuple[Statement, ...] = ()

  def __iter__(self) -> Iterator[Statement]:
    return iter(self.statements)

  def __len__(self) -> int:
    return len(self.statements)

  def __getitem__(self, index: int) -> Statement:
    return self.statements[index]


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _significant_children(cst_node: CSTNode) -> List[CSTNode]:
  """Children without punctuation"""
  return [child for child in cst_node.children if child.type != "punct"]


def _join_spans(left: Optional[SourceSpan], right: Optional[SourceSpan],
                source: Optional[SourceSpan]) -> Optional[SourceSpan]:
  """Span covering left..right, cut from the enclosing node's span"""
  if left is None or right is None or source is None:
    return None
  offset = left.start - source.start
  text = source.text[offset:offset + (right.end - left.start)]
  return SourceSpan(left.start, right.end, left.start_line, left.start_col,
                    right.end_line, right.end_col, text)


def _unexpected_node(cst_node: CSTNode, expected: str) -> ParseError:
  position = cst_node.span.start if cst_node.span else 0
  return ParseError(f"Malformed concrete tree: expected {expected}, got {cst_node.type}", position)


# ============================================================================
# EXPRESSION LOWERING
# ============================================================================

def analyze_number(cst_node: CSTNode, config: TinyLangConfig, debug: bool = False) -> Result:
  """number token -> Literal, failing when the literal does not fit the integer width"""
  text = cst_node.value
  digits = text.lstrip("0") or "0"
  value = None
  # More digits than any value of this width can have: overflow, unconverted
  if len(digits) <= max_decimal_digits(config.int_bits):
    try:
      value = int(digits)
    except ValueError:
      value = None
  if value is None or value > config.max_int:
    span = cst_node.span
    return Err(LiteralOverflow(text, span.start if span else 0, config.max_int,
                               span.start_line if span else 0, span.start_col if span else 0))
  return Ok(Literal(value, cst_node.span))


def analyze_factor(cst_node: CSTNode, config: TinyLangConfig, debug: bool = False) -> Result:
  """factor -> Literal | Variable | the lowered inner expression (grouping collapses)"""
  inner = _significant_children(cst_node)
  if len(inner) != 1:
    return Err(_unexpected_node(cst_node, "a single factor"))

  child = inner[0]
  if child.type == "number":
    return analyze_number(child, config, debug)
  if child.type == "identifier":
    return Ok(Variable(child.value, child.span))
  if child.type == "expression":
    return analyze_expression(child, config, debug)
  return Err(_unexpected_node(child, "number, identifier or expression"))


def _fold_binary_chain(cst_node: CSTNode, analyze_operand, config: TinyLangConfig,
                       debug: bool = False) -> Result:
  """
  Fold 'operand (op operand)*' into a left-associative BinaryOp chain

  a - b - c becomes BinaryOp(-, BinaryOp(-, a, b), c).
  """
  children = cst_node.children
  if not children or len(children) % 2 == 0:
    return Err(_unexpected_node(cst_node, "operand (operator operand)*"))

  current = analyze_operand(children[0], config, debug)
  if not current.ok:
    return current

  # Process children in pairs of (operator, operand)
  for i in range(1, len(children), 2):
    op_node, operand_node = children[i], children[i + 1]
    right = analyze_operand(operand_node, config, debug)
    if not right.ok:
      return right
    left = current.value
    span = _join_spans(left.span, right.value.span, cst_node.span)
    current = Ok(BinaryOp(BinaryOperator.from_symbol(op_node.value), left, right.value, span))

  return current


def analyze_term(cst_node: CSTNode, config: TinyLangConfig, debug: bool = False) -> Result:
  """term -> factor chain joined by '*' and '/'"""
  return _fold_binary_chain(cst_node, analyze_factor, config, debug)


def analyze_expression(cst_node: CSTNode, config: TinyLangConfig, debug: bool = False) -> Result:
  """expression -> term chain joined by '+' and '-'"""
  return _fold_binary_chain(cst_node, analyze_term, config, debug)


# ============================================================================
# STATEMENT LOWERING
# ============================================================================

def analyze_assignment(cst_node: CSTNode, config: TinyLangConfig, debug: bool = False) -> Result:
  """identifier '=' expression -> Assignment"""
  inner = _significant_children(cst_node)
  if len(inner) != 2 or inner[0].type != "identifier":
    return Err(_unexpected_node(cst_node, "identifier '=' expression"))

  name_node, expr_node = inner
  return map_result(analyze_expression(expr_node, config, debug),
                    lambda value: Assignment(name_node.value, value, cst_node.span))


def analyze_statement(cst_node: CSTNode, config: TinyLangConfig, debug: bool = False) -> Result:
  """statement -> Assignment | ExpressionStatement; the ';' is dropped"""
  inner = _significant_children(cst_node)
  if len(inner) != 1:
    return Err(_unexpected_node(cst_node, "assignment or expression"))

  stmt = inner[0]
  if stmt.type == "assignment":
    result = analyze_assignment(stmt, config, debug)
  elif stmt.type == "expression":
    result = map_result(analyze_expression(stmt, config, debug),
                        lambda expr: ExpressionStatement(expr, stmt.span))
  else:
    return Err(_unexpected_node(stmt, "assignment or expression"))

  if debug and result.ok:
    logger.debug("Lowered statement at %s: %r", stmt.span, result.value)
  return result


def analyze_program(cst_node: CSTNode, config: Optional[TinyLangConfig] = None,
                    debug: bool = False) -> Result:
  """program CST -> Program; statement order is preserved"""
  config = config or DEFAULT_CONFIG
  if cst_node.type != "program":
    return Err(_unexpected_node(cst_node, "program"))

  statements = collect_results(
    analyze_statement(child, config, debug) for child in cst_node.children
  )
  return map_result(statements, lambda stmts: Program(tuple(stmts)))


# ============================================================================
# ENTRY POINT
# ============================================================================

def parse(source: str, filename: str = "<input>", config: Optional[TinyLangConfig] = None,
          debug: bool = False) -> Result:
  """
  Parse source text into a Program

  Returns:
    Ok(Program) or Err(ParseError); parsing never touches any environment
  """
  config = config or DEFAULT_CONFIG
  parser = create_parser(debug=debug, config=config)
  cst = parser.parse_string(source, filename)
  if not cst.ok:
    return cst

  program = analyze_program(cst.value, config, debug)
  if not program.ok and isinstance(program.error, ParseError):
    program.error.filename = filename
  return program


# ============================================================================
# AST UTILITIES
# ============================================================================

def format_expression(expr: Expression) -> str:
  """Render an expression in prefix form: 2 + 3 * 4 -> (+ 2 (* 3 4))"""
  if isinstance(expr, Literal):
    return str(expr.value)
  if isinstance(expr, Variable):
    return expr.name
  return f"({expr.op.value} {format_expression(expr.left)} {format_expression(expr.right)})"


def pretty_print_ast(program: Program) -> str:
  """One line per statement"""
  lines = []
  for i, stmt in enumerate(program, 1):
    if isinstance(stmt, Assignment):
      lines.append(f"{i}: Assignment {stmt.name} = {format_expression(stmt.value)}")
    else:
      lines.append(f"{i}: Expression {format_expression(stmt.expression)}")
  return "\n".join(lines)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class TinyAnalyzer:
  """Lowers concrete trees produced by TinyParser"""

  def __init__(self, debug: bool = False, config: Optional[TinyLangConfig] = None):
    self.debug = debug
    self.config = config or DEFAULT_CONFIG

  def analyze(self, cst_node: CSTNode) -> Result:
    return analyze_program(cst_node, self.config, self.debug)


def create_analyzer(debug: bool = False, config: Optional[TinyLangConfig] = None) -> TinyAnalyzer:
  """Factory function returning an analyzer"""
  return TinyAnalyzer(debug=debug, config=config)


def create_debug_analyzer(config: Optional[TinyLangConfig] = None) -> TinyAnalyzer:
  """Factory function returning a debug analyzer"""
  return TinyAnalyzer(debug=True, config=config)
