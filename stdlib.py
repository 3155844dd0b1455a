"""
shexpr Standard Library
Runtime values, arithmetic operators and the built-in functions
reachable through function-call nodes
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List
import operator
import re

from error_handling import ErrorKind, InterpreterError
from parsing import NodeKind
from utilities import (
  binary_arithmetic_op,
  check_i32,
  in_i32_range,
  missing_argument_error,
  truncating_div,
  type_mismatch_error,
  validate_function_args,
)


# ============================================================================
# RUNTIME VALUES
# ============================================================================

@dataclass(frozen=True)
class Literal:
  """Tagged runtime value: type is "Num" or "String" """
  type: str
  value: Any

  def __str__(self) -> str:
    return show(self)


def make_value(value: Any, type_name: str) -> Literal:
  """Create an immutable runtime value"""
  if type_name == "Num":
    return make_num(value)
  return Literal(type_name, value)


def make_num(value: int) -> Literal:
  if not in_i32_range(value):
    raise InterpreterError(
      ErrorKind.CALCULATION_ERROR,
      f"{value} does not fit in a 32-bit integer"
    )
  return Literal("Num", value)


def make_string(value: str) -> Literal:
  return Literal("String", value)


def show(value: Literal) -> str:
  """Display form: integers in decimal, strings as-is"""
  if value.type == "Num":
    return str(value.value)
  return value.value


# ============================================================================
# ARITHMETIC
# ============================================================================

calc_add = binary_arithmetic_op(operator.add, "add")
calc_sub = binary_arithmetic_op(operator.sub, "subtract")
calc_mul = binary_arithmetic_op(operator.mul, "multiply")
calc_div = binary_arithmetic_op(truncating_div, "divide")


OPERATORS: Dict[NodeKind, Callable[[Literal, Literal, Callable], Literal]] = {
  NodeKind.ADD: calc_add,
  NodeKind.SUB: calc_sub,
  NodeKind.MUL: calc_mul,
  NodeKind.DIV: calc_div,
}


def apply_operator(kind: NodeKind, stack: List[Literal]) -> Literal:
  """
  Pop the right then the left operand, apply the operator for kind and
  push the result

  Raises:
    InterpreterError(CALCULATION_ERROR) if kind is not an operator
    InterpreterError(ZERO_STACK) if fewer than two operands are stacked
  """
  op = OPERATORS.get(kind)
  if op is None:
    raise InterpreterError(
      ErrorKind.CALCULATION_ERROR,
      f"{kind.name} is not an arithmetic operator"
    )

  if len(stack) < 2:
    raise InterpreterError(
      ErrorKind.ZERO_STACK,
      f"{kind.name} needs two operands, found {len(stack)}"
    )
  right = stack.pop()
  left = stack.pop()

  result = op(left, right, make_value)
  stack.append(result)
  return result


# ============================================================================
# BUILT-IN FUNCTIONS
# ============================================================================

def builtin_calc(args: List[Literal]) -> Literal:
  """Return the evaluated argument unchanged"""
  if not args:
    raise missing_argument_error("calc")
  return args[0]


def builtin_echo(args: List[Literal]) -> Literal:
  """Display form of the argument as a String, or "" without one"""
  if not args:
    return make_string("")
  return make_string(show(args[0]))


def builtin_abs(args: List[Literal]) -> Literal:
  validate_function_args("abs", args, ["Num"])
  return make_num(check_i32(abs(args[0].value), "abs"))


def builtin_neg(args: List[Literal]) -> Literal:
  validate_function_args("neg", args, ["Num"])
  return make_num(check_i32(-args[0].value, "neg"))


def builtin_len(args: List[Literal]) -> Literal:
  validate_function_args("len", args, ["String"])
  return make_num(len(args[0].value))


def builtin_str(args: List[Literal]) -> Literal:
  if not args:
    raise missing_argument_error("str")
  return make_string(show(args[0]))


INTEGER_PATTERN = re.compile(r'\s*[+-]?[0-9]+\s*')


def builtin_int(args: List[Literal]) -> Literal:
  """Parse a String as a decimal integer; a Num is returned unchanged"""
  if not args:
    raise missing_argument_error("int")
  arg = args[0]
  if arg.type == "Num":
    return arg

  validate_function_args("int", args, ["String"])
  if not INTEGER_PATTERN.fullmatch(arg.value):
    raise type_mismatch_error("int", "a decimal integer string", arg)
  return make_num(int(arg.value))


BUILTIN_FUNCTIONS: Dict[str, Callable[[List[Literal]], Literal]] = {
  'calc': builtin_calc,
  'echo': builtin_echo,
  'abs': builtin_abs,
  'neg': builtin_neg,
  'len': builtin_len,
  'str': builtin_str,
  'int': builtin_int,
}


def call_builtin(name: str, args: List[Literal]) -> Literal:
  """
  Dispatch a function-call node to its built-in implementation

  Raises:
    InterpreterError(UNDEFINED_FUNCTION) for an unknown name
  """
  func = BUILTIN_FUNCTIONS.get(name)
  if func is None:
    raise InterpreterError(
      ErrorKind.UNDEFINED_FUNCTION,
      f"Unknown function: {name}"
    )
  return func(args)
