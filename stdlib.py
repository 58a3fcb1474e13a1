"""
Tiny Language Standard Library
Built-in arithmetic operators over fixed-width signed integers
"""

import operator
from typing import Callable, Dict, List, Optional

from config import TinyLangConfig
from error_handling import ArithmeticOverflow, DivisionByZero
from parsing import SourceSpan
from semantics import BinaryOperator
from utilities import Err, Ok, Result, checked_arithmetic_op, truncating_div


# ============================================================================
# ARITHMETIC FUNCTIONS
# ============================================================================

# Use factory functions for the width-checked operations
_tiny_add_impl = checked_arithmetic_op(operator.add, "+")
_tiny_sub_impl = checked_arithmetic_op(operator.sub, "-")
_tiny_mul_impl = checked_arithmetic_op(operator.mul, "*")
_tiny_div_impl = checked_arithmetic_op(truncating_div, "/")


def _checked(impl, symbol: str, left: int, right: int, config: TinyLangConfig,
             span: Optional[SourceSpan]) -> Result:
  result, fits = impl(left, right, config.int_bits)
  if not fits:
    return Err(ArithmeticOverflow(symbol, left, right, span))
  return Ok(result)


def tiny_add(left: int, right: int, config: TinyLangConfig,
             span: Optional[SourceSpan] = None) -> Result:
  """Addition"""
  return _checked(_tiny_add_impl, "+", left, right, config, span)


def tiny_sub(left: int, right: int, config: TinyLangConfig,
             span: Optional[SourceSpan] = None) -> Result:
  """Subtraction; negative results are ordinary values"""
  return _checked(_tiny_sub_impl, "-", left, right, config, span)


def tiny_mul(left: int, right: int, config: TinyLangConfig,
             span: Optional[SourceSpan] = None) -> Result:
  """Multiplication"""
  return _checked(_tiny_mul_impl, "*", left, right, config, span)


def tiny_div(left: int, right: int, config: TinyLangConfig,
             span: Optional[SourceSpan] = None) -> Result:
  """
  Integer division truncating toward zero

  A zero divisor fails with DivisionByZero. The only overflowing case is
  the minimum value divided by -1.
  """
  if right == 0:
    return Err(DivisionByZero(span))
  return _checked(_tiny_div_impl, "/", left, right, config, span)


# ============================================================================
# BUILT-IN OPERATOR REGISTRY
# ============================================================================

BUILTIN_OPERATORS: Dict[BinaryOperator, Callable[..., Result]] = {
  BinaryOperator.ADD: tiny_add,
  BinaryOperator.SUB: tiny_sub,
  BinaryOperator.MUL: tiny_mul,
  BinaryOperator.DIV: tiny_div,
}


def get_builtin_operator(op: BinaryOperator) -> Callable[..., Result]:
  """Get the implementation of a binary operator"""
  return BUILTIN_OPERATORS[op]


def list_builtin_operators() -> List[str]:
  """List all available operator symbols"""
  return [op.value for op in BUILTIN_OPERATORS]
