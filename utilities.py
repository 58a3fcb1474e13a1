"""
Utilities module for the Tiny Language parser/interpreter
Result type and integer-width helpers shared by every stage
"""

import math
from bisect import bisect_right
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Generic, Iterable, List, Tuple, TypeVar, Union


T = TypeVar('T')
E = TypeVar('E', bound=Exception)


# ==================== RESULT TYPE ====================

@dataclass(frozen=True)
class Ok(Generic[T]):
  """Successful outcome of a parser or evaluator step"""
  value: T

  @property
  def ok(self) -> bool:
    return True

  def unwrap(self) -> T:
    return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
  """Failed outcome carrying the error that stopped the step"""
  error: E

  @property
  def ok(self) -> bool:
    return False

  def unwrap(self):
    raise self.error


Result = Union[Ok[T], Err[E]]


def collect_results(results: Iterable[Result]) -> Result:
  """
  Gather an iterable of results into one result holding a list

  Stops at the first Err and returns it unchanged.

  Examples:
    collect_results([Ok(1), Ok(2)]) -> Ok([1, 2])
    collect_results([Ok(1), Err(e), Ok(3)]) -> Err(e)
  """
  values: List[Any] = []
  for result in results:
    if not result.ok:
      return result
    values.append(result.value)
  return Ok(values)


def map_result(result: Result, func: Callable[[Any], Any]) -> Result:
  """Apply func to the value of an Ok, pass an Err through untouched"""
  if not result.ok:
    return result
  return Ok(func(result.value))


# ==================== INTEGER WIDTH UTILITIES ====================

def int_bounds(bits: int) -> Tuple[int, int]:
  """
  Signed range representable with the given width

  Args:
    bits: Integer width in bits (two's complement)

  Returns:
    (minimum, maximum) inclusive

  Examples:
    int_bounds(8) -> (-128, 127)
  """
  return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


def fits_in_bits(value: int, bits: int) -> bool:
  """Check that value is representable as a signed integer of the given width"""
  low, high = int_bounds(bits)
  return low <= value <= high


def truncating_div(x: int, y: int) -> int:
  """
  Integer division rounding toward zero

  Python's // floors, so a negative quotient is adjusted by one when the
  division is inexact.

  Examples:
    truncating_div(7, 2) -> 3
    truncating_div(-7, 2) -> -3
  """
  quotient = abs(x) // abs(y)
  return quotient if (x >= 0) == (y >= 0) else -quotient


def max_decimal_digits(bits: int) -> int:
  """Upper bound on the decimal digits of the largest signed value of the given width"""
  return int((bits - 1) * math.log10(2)) + 2


# ==================== SOURCE POSITIONS ====================

@lru_cache(maxsize=8)
def line_offsets(text: str) -> Tuple[int, ...]:
  """Offsets at which each line of text starts; computed once per text"""
  offsets = [0]
  newline = text.find('\n')
  while newline != -1:
    offsets.append(newline + 1)
    newline = text.find('\n', newline + 1)
  return tuple(offsets)


def line_and_column(text: str, position: int) -> Tuple[int, int]:
  """1-based line and column of a character offset in text"""
  position = max(0, min(position, len(text)))
  offsets = line_offsets(text)
  line = bisect_right(offsets, position)
  return line, position - offsets[line - 1] + 1


# ==================== ARITHMETIC OPERATION FACTORIES ====================

def checked_arithmetic_op(op_func: Callable[[int, int], int], symbol: str):
  """
  Factory function for width-checked binary arithmetic

  The returned function computes op_func(left, right) with Python's
  unbounded ints and reports whether the exact result fits the width.

  Returns:
    function (left, right, bits) -> (result, fits)
  """
  def operation(left: int, right: int, bits: int) -> Tuple[int, bool]:
    result = op_func(left, right)
    return result, fits_in_bits(result, bits)

  operation.__name__ = f"checked_{symbol}"
  return operation
