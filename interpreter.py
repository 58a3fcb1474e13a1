"""
Tiny Language Interpreter - tree-walking evaluator
Pure evaluation functions over an explicitly passed environment
Concurrency (independent programs in worker processes) handled at the boundary
"""

import logging
import multiprocessing
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from config import DEFAULT_CONFIG, TinyLangConfig
from error_handling import EvalError, UndefinedVariable
from semantics import (
  Assignment,
  BinaryOp,
  Expression,
  ExpressionStatement,
  Literal,
  Program,
  Statement,
  Variable,
  parse,
)
from stdlib import get_builtin_operator
from utilities import Err, Ok, Result

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

Environment = Dict[str, int]


@dataclass(frozen=True)
class Bound:
  """Outcome of an assignment statement"""
  name: str
  value: int

  def __str__(self) -> str:
    return f"{self.name} = {self.value}"


@dataclass(frozen=True)
class Evaluated:
  """Outcome of a bare expression statement"""
  value: int

  def __str__(self) -> str:
    return f"=> {self.value}"


StatementOutcome = Union[Bound, Evaluated]


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def make_environment(bindings: Optional[Dict[str, int]] = None) -> Environment:
  """Create a fresh environment, owned by exactly one run"""
  return dict(bindings or {})


def env_lookup(env: Environment, name: str) -> Optional[int]:
  """Look up a value in the environment"""
  return env.get(name)


def env_bind(env: Environment, name: str, value: int) -> None:
  """Bind name to value, overwriting any prior binding"""
  env[name] = value


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_expression(expr: Expression, env: Environment, config: TinyLangConfig,
                    debug: bool = False) -> Result:
  """
  Evaluate an expression node and return Ok(int) or Err(EvalError).
  The environment is only read here.
  """
  if isinstance(expr, Literal):
    return eval_literal(expr, env, config, debug)
  elif isinstance(expr, Variable):
    return eval_variable(expr, env, config, debug)
  elif isinstance(expr, BinaryOp):
    return eval_binary_op(expr, env, config, debug)
  raise TypeError(f"Unknown expression node: {expr!r}")


def eval_literal(expr: Literal, env: Environment, config: TinyLangConfig,
                 debug: bool = False) -> Result:
  """Evaluate integer literal"""
  return Ok(expr.value)


def eval_variable(expr: Variable, env: Environment, config: TinyLangConfig,
                  debug: bool = False) -> Result:
  """Evaluate identifier by looking it up in the environment"""
  value = env_lookup(env, expr.name)
  if value is None:
    return Err(UndefinedVariable(expr.name, expr.span))
  return Ok(value)


def eval_binary_op(expr: BinaryOp, env: Environment, config: TinyLangConfig,
                   debug: bool = False) -> Result:
  """Evaluate left, then right, then apply the operator"""
  left = eval_expression(expr.left, env, config, debug)
  if not left.ok:
    return left

  right = eval_expression(expr.right, env, config, debug)
  if not right.ok:
    return right

  result = get_builtin_operator(expr.op)(left.value, right.value, config, expr.span)
  if debug and result.ok:
    logger.debug("  %s %s %s -> %s", left.value, expr.op.value, right.value, result.value)
  return result


def eval_statement(stmt: Statement, env: Environment, config: Optional[TinyLangConfig] = None,
                   debug: bool = False) -> Result:
  """
  Evaluate one statement against env.

  An assignment binds only after its expression evaluated successfully,
  so a failing statement leaves env untouched.

  Returns:
    Ok(Bound | Evaluated) or Err(EvalError)
  """
  config = config or DEFAULT_CONFIG

  if isinstance(stmt, Assignment):
    value = eval_expression(stmt.value, env, config, debug)
    if not value.ok:
      return value
    env_bind(env, stmt.name, value.value)
    outcome = Bound(stmt.name, value.value)
  elif isinstance(stmt, ExpressionStatement):
    value = eval_expression(stmt.expression, env, config, debug)
    if not value.ok:
      return value
    outcome = Evaluated(value.value)
  else:
    raise TypeError(f"Unknown statement node: {stmt!r}")

  if debug:
    logger.debug("Statement %r -> %s", stmt, outcome)
  return Ok(outcome)


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def execute_program(program: Program, env: Environment, config: Optional[TinyLangConfig] = None,
                    debug: bool = False) -> Tuple[List[StatementOutcome], Optional[EvalError]]:
  """
  Evaluate statements in order until the first failure.
  Returns (outcomes of the statements that succeeded, error or None)
  """
  config = config or DEFAULT_CONFIG
  outcomes: List[StatementOutcome] = []

  for index, stmt in enumerate(program):
    result = eval_statement(stmt, env, config, debug)
    if not result.ok:
      result.error.statement_index = index
      if debug:
        logger.debug("Statement %d failed: %s", index, result.error)
      return outcomes, result.error
    outcomes.append(result.value)

  return outcomes, None


def run(program: Program, environment: Optional[Environment] = None,
        config: Optional[TinyLangConfig] = None, debug: bool = False) -> Result:
  """
  Run a program; pass environment to carry bindings across calls.
  Bindings made before a failing statement stay in environment.

  Returns:
    Ok(list of outcomes) or Err(EvalError)
  """
  env = environment if environment is not None else make_environment()
  outcomes, error = execute_program(program, env, config, debug)
  if error is not None:
    return Err(error)
  return Ok(outcomes)


# ============================================================================
# CONCURRENT RUNNER
# ============================================================================

@dataclass
class ProgramReport:
  """Result of running one named program"""
  name: str
  outcomes: List[StatementOutcome] = field(default_factory=list)
  variables: Dict[str, int] = field(default_factory=dict)
  error: Optional[Exception] = None

  @property
  def ok(self) -> bool:
    return self.error is None


def run_program_source(name: str, source: str, config: Optional[TinyLangConfig] = None,
                       debug: bool = False) -> ProgramReport:
  """Parse and run one program with its own fresh environment"""
  config = config or DEFAULT_CONFIG
  env = make_environment()
  try:
    program = parse(source, name, config, debug)
    if not program.ok:
      return ProgramReport(name, error=program.error)
    outcomes, error = execute_program(program.value, env, config, debug)
  except RecursionError:
    logger.warning("Program %s is nested too deeply to evaluate", name)
    return ProgramReport(name, variables=dict(env),
                         error=RecursionError(f"{name}: expression nesting too deep"))

  return ProgramReport(name, outcomes, dict(env), error)


def run_programs_concurrently(programs: Iterable[Tuple[str, str]],
                              config: Optional[TinyLangConfig] = None,
                              timeout: Optional[float] = None,
                              max_workers: Optional[int] = None,
                              debug: bool = False) -> List[ProgramReport]:
  """
  Run independent (name, source) programs on a pool of worker processes.

  Nothing is shared between programs. Reports come back in input order.
  timeout is one deadline for the whole batch: programs not finished by
  then are reported with a TimeoutError and their workers are terminated.
  """
  programs = list(programs)
  if not programs:
    return []

  config = config or DEFAULT_CONFIG
  workers = min(max_workers or multiprocessing.cpu_count(), len(programs))
  deadline = None if timeout is None else time.monotonic() + timeout

  # Leaving the block terminates the pool, including workers still running
  with multiprocessing.Pool(processes=workers) as pool:
    pending = [
      pool.apply_async(run_program_source, (name, source, config, debug))
      for name, source in programs
    ]

    reports = []
    for (name, _), result in zip(programs, pending):
      remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
      try:
        reports.append(result.get(remaining))
      except multiprocessing.TimeoutError:
        logger.warning("Program %s did not finish within %ss", name, timeout)
        reports.append(ProgramReport(name, error=TimeoutError(
          f"{name} did not finish within {timeout}s")))
    return reports


# ============================================================================
# INTERPRETER (persistent environment)
# ============================================================================

class TinyInterpreter:
  """Interpreter keeping one environment across calls (interactive sessions)"""

  def __init__(self, debug: bool = False, config: Optional[TinyLangConfig] = None):
    self.debug = debug
    self.config = config or DEFAULT_CONFIG
    self.environment = make_environment()

  @property
  def variables(self) -> Dict[str, int]:
    return dict(self.environment)

  def interpret(self, program: Program) -> Result:
    """Run program against the persistent environment"""
    return run(program, self.environment, self.config, self.debug)

  def interpret_source(self, source: str, filename: str = "<input>") -> Result:
    """Parse and run source; a parse error leaves the environment untouched"""
    program = parse(source, filename, self.config, self.debug)
    if not program.ok:
      return program
    return self.interpret(program.value)

  def reset(self) -> None:
    self.environment = make_environment()


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False, config: Optional[TinyLangConfig] = None) -> TinyInterpreter:
  """Factory function returning an interpreter"""
  return TinyInterpreter(debug=debug, config=config)


def create_debug_interpreter(config: Optional[TinyLangConfig] = None) -> TinyInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True, config=config)
