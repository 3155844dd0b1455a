"""
Utilities module for the shexpr interpreter
Logger sinks, 32-bit integer arithmetic and shared error builders
"""

from typing import Any, Callable, List, Optional

from error_handling import ErrorKind, InterpreterError


I32_MIN = -2 ** 31
I32_MAX = 2 ** 31 - 1


# ==================== LOGGER SINKS ====================

class NullLogger:
  """Logger that drops every message"""

  enabled = False

  def print(self, message: str) -> None:
    pass


class ConsoleLogger:
  """Logger that writes trace messages to stdout"""

  enabled = True

  def __init__(self, prefix: str = "[trace] "):
    self.prefix = prefix

  def print(self, message: str) -> None:
    print(f"{self.prefix}{message}")


def resolve_logger(logger: Optional[Any]) -> Any:
  """
  Return logger, or a NullLogger when none is given

  Any object with a print(message) method is accepted.
  """
  return NullLogger() if logger is None else logger


def is_tracing(logger: Any) -> bool:
  """False only for sinks that declare enabled = False"""
  return getattr(logger, 'enabled', True)


# ==================== INTEGER UTILITIES ====================

def in_i32_range(value: int) -> bool:
  return I32_MIN <= value <= I32_MAX


def check_i32(value: int, op_name: str) -> int:
  """
  Ensure an arithmetic result fits in a signed 32-bit integer

  Raises:
    InterpreterError(CALCULATION_ERROR) on overflow
  """
  if not in_i32_range(value):
    raise InterpreterError(
      ErrorKind.CALCULATION_ERROR,
      f"{op_name} overflows a 32-bit integer: {value}"
    )
  return value


def truncating_div(x: int, y: int) -> int:
  """
  Integer division rounding toward zero

  Examples:
    truncating_div(7, 2) -> 3
    truncating_div(-7, 2) -> -3
  """
  if y == 0:
    raise InterpreterError(ErrorKind.CALCULATION_ERROR, "division by zero")
  quotient = abs(x) // abs(y)
  return quotient if (x < 0) == (y < 0) else -quotient


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(func_name: str, expected: str, actual: Any) -> InterpreterError:
  """Error for a value of the wrong literal type"""
  return InterpreterError(
    ErrorKind.TYPE_MISMATCH,
    f"{func_name} requires {expected}, got {actual.type}"
  )


def missing_argument_error(func_name: str) -> InterpreterError:
  return InterpreterError(
    ErrorKind.INVALID_RVALUE,
    f"{func_name} requires an argument"
  )


def operation_error(op: str, left_type: str, right_type: str) -> InterpreterError:
  """
  Error for a binary operation on operands it is not defined for

  Only Num with Num has arithmetic; String operands on either side are
  a type mismatch.
  """
  return InterpreterError(
    ErrorKind.TYPE_MISMATCH,
    f"Cannot {op} {left_type} and {right_type}"
  )


# ==================== VALIDATION UTILITIES ====================

def validate_function_args(func_name: str, args: List[Any], expected_types: List[str]) -> None:
  """
  Validate built-in function arguments against expected types

  Raises:
    InterpreterError if an argument is missing or has the wrong type.
    Arity above one is rejected by the evaluator before the call
  """
  if len(args) < len(expected_types):
    raise missing_argument_error(func_name)

  for arg, expected in zip(args, expected_types):
    if arg.type != expected:
      raise type_mismatch_error(func_name, expected, arg)


# ==================== BINARY OPERATION FACTORIES ====================

def binary_arithmetic_op(
  op: Callable[[int, int], int],
  op_name: str,
  allowed_types: Optional[List[str]] = None
) -> Callable[[Any, Any, Callable], Any]:
  """
  Factory for binary arithmetic operations

  Args:
    op: Python function on the raw values (e.g., operator.add)
    op_name: Name for error messages
    allowed_types: Literal types that support this operation

  Returns:
    Function (left, right, make_value) -> Literal

  Examples:
    calc_add = binary_arithmetic_op(operator.add, "add")
    result = calc_add(make_num(1), make_num(2), make_value)
  """
  if allowed_types is None:
    allowed_types = ["Num"]

  def arithmetic(x: Any, y: Any, make_value: Callable) -> Any:
    if x.type != y.type or x.type not in allowed_types:
      raise operation_error(op_name, x.type, y.type)
    return make_value(check_i32(op(x.value, y.value), op_name), x.type)

  return arithmetic
