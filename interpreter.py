"""
shexpr Interpreter
Tree-walking stack machine, the session pipeline that feeds it,
and an actor that owns a session for callers on other threads
"""

from typing import Dict, List, Optional, Tuple
import pykka

from error_handling import ErrorKind, InterpreterError
from parsing import AstNode, NodeKind, Parser
from stdlib import (
  Literal,
  OPERATORS,
  apply_operator,
  call_builtin,
  make_num,
  make_string,
)
from utilities import ConsoleLogger, resolve_logger


# ============================================================================
# STACK MACHINE
# ============================================================================

class StackMachine:
  """Evaluates AST nodes against one environment and one operand stack"""

  def __init__(self, logger=None):
    self.logger = resolve_logger(logger)
    self.environment: Dict[str, Literal] = {}
    self.stack: List[Literal] = []

  def execute(self, node: AstNode) -> Literal:
    """
    Evaluate node and return its value.
    The value is also left on top of the operand stack.
    """
    self.logger.print(f"Evaluating: {node.kind.name}")
    kind = node.kind

    if kind is NodeKind.NUM:
      return self._push(make_num(node.value))
    elif kind is NodeKind.STRING:
      return self._push(make_string(node.value))
    elif kind is NodeKind.ASSIGN:
      return self.eval_assign(node)
    elif kind is NodeKind.LOCAL_VARIABLE:
      return self.eval_local_variable(node)
    elif kind is NodeKind.RETURN:
      return self.eval_return(node)
    elif kind is NodeKind.FUNC:
      return self.eval_func(node)
    return self.eval_operation(node)

  def eval_assign(self, node: AstNode) -> Literal:
    """Store the right-hand value under the left-hand variable name"""
    target = node.children[0] if node.children else None
    if target is None or target.kind is not NodeKind.LOCAL_VARIABLE:
      position = target.position if target is not None else node.position
      raise InterpreterError(
        ErrorKind.INVALID_L_VARIABLE,
        "left side of '=' must be a variable such as $a",
        position
      )
    if len(node.children) < 2:
      raise InterpreterError(
        ErrorKind.INVALID_RVALUE,
        f"nothing to assign to ${target.value}",
        node.position
      )

    value = self.execute(node.children[1])
    self.environment[target.value] = value
    self.logger.print(f"assign: {target.value} = {value}")
    return value

  def eval_local_variable(self, node: AstNode) -> Literal:
    value = self.environment.get(node.value)
    if value is None:
      raise InterpreterError(
        ErrorKind.UNDEFINED_VARIABLE,
        f"${node.value} is not defined",
        node.position
      )
    return self._push(value)

  def eval_return(self, node: AstNode) -> Literal:
    if len(node.children) != 1:
      raise InterpreterError(
        ErrorKind.INVALID_RVALUE,
        "return needs exactly one value",
        node.position
      )
    return self.execute(node.children[0])

  def eval_func(self, node: AstNode) -> Literal:
    """Call a built-in function with its optional argument"""
    if len(node.children) > 1:
      raise InterpreterError(
        ErrorKind.CALCULATION_ERROR,
        f"{node.value} takes at most one argument",
        node.position
      )

    args = []
    for child in node.children:
      self.execute(child)
      args.append(self._pop())

    try:
      result = call_builtin(node.value, args)
    except InterpreterError as e:
      if e.position is not None:
        raise
      raise InterpreterError(e.kind, e.message, node.position) from e
    return self._push(result)

  def eval_operation(self, node: AstNode) -> Literal:
    """
    Evaluate a chain of binary operators, then apply each to the stack

    Left operands that are themselves operators are unwound into the chain
    and applied innermost first, as in 1+2+3 = (1+2)+3.
    """
    chain = []
    current = node
    while True:
      self._check_operation(current)
      chain.append(current)
      left = current.children[0]
      if left.kind not in OPERATORS:
        break
      self.logger.print(f"Evaluating: {left.kind.name}")
      current = left

    self.execute(left)
    for op_node in reversed(chain):
      self.execute(op_node.children[1])
      try:
        apply_operator(op_node.kind, self.stack)
      except InterpreterError as e:
        if e.position is not None:
          raise
        raise InterpreterError(e.kind, e.message, op_node.position) from e

    if not self.stack:
      raise InterpreterError(ErrorKind.ZERO_STACK, "operand stack is empty", node.position)
    return self.stack[-1]

  def _check_operation(self, node: AstNode) -> None:
    if node.kind not in OPERATORS:
      raise InterpreterError(
        ErrorKind.CALCULATION_ERROR,
        f"{node.kind.name} is not an arithmetic operator",
        node.position
      )
    if len(node.children) != 2:
      raise InterpreterError(
        ErrorKind.CALCULATION_ERROR,
        f"{node.kind.name} needs two operands, has {len(node.children)}",
        node.position
      )

  def _push(self, value: Literal) -> Literal:
    self.stack.append(value)
    return value

  def _pop(self) -> Literal:
    if not self.stack:
      raise InterpreterError(ErrorKind.ZERO_STACK, "operand stack is empty")
    return self.stack.pop()

  def variables(self) -> Dict[str, Literal]:
    return dict(self.environment)

  def reset(self) -> None:
    self.environment.clear()
    self.stack.clear()


# ============================================================================
# SESSION PIPELINE
# ============================================================================

class Session:
  """
  One interpreter session: tokenizer, parser and a stack machine whose
  variables persist from one line to the next.

  Sessions share no state, so independent sessions may live side by side.
  A single session must not be used from several threads at once; see
  SessionActor for that.
  """

  def __init__(self, logger=None):
    self.logger = resolve_logger(logger)
    self.parser = Parser(self.logger)
    self.machine = StackMachine(self.logger)

  def parse(self, text: str, leading_call: bool = False) -> Tuple[AstNode, ...]:
    """Parse text without evaluating it"""
    try:
      if leading_call:
        return self.parser.parse_program(text, leading_call=True)
      return (self.parser.parse_statement(text),)
    except RecursionError:
      raise InterpreterError(
        ErrorKind.SYNTAX_ERROR,
        "expression is nested too deeply to parse",
        0
      ) from None

  def evaluate(self, text: str) -> Literal:
    """Evaluate one expression statement, e.g. "5+6*7" or "$a=5" """
    node = self.parse(text)[0]
    return self._execute_top_level(node)

  def run(self, line: str) -> Literal:
    """
    Run a command line whose first word is a function call,
    e.g. "calc $a=1; return $a; $a=2"
    """
    nodes = self.parse(line, leading_call=True)
    return self.execute_program(nodes)

  def execute_program(self, nodes: Tuple[AstNode, ...]) -> Optional[Literal]:
    """
    Execute top-level nodes in order and return the last value.
    A top-level return stops the program with its value.
    """
    result = None
    for node in nodes:
      result = self._execute_top_level(node)
      if node.kind is NodeKind.RETURN:
        self.logger.print(f"return: {result}")
        break
    return result

  def _execute_top_level(self, node: AstNode) -> Literal:
    self.machine.stack.clear()
    try:
      return self.machine.execute(node)
    except RecursionError:
      self.machine.stack.clear()
      raise InterpreterError(
        ErrorKind.CALCULATION_ERROR,
        "expression is nested too deeply to evaluate",
        node.position
      ) from None

  def variables(self) -> Dict[str, Literal]:
    return self.machine.variables()

  def reset(self) -> None:
    self.machine.reset()


def create_interpreter(debug: bool = False) -> Session:
  """Factory function returning a session, tracing to the console in debug mode"""
  return Session(ConsoleLogger() if debug else None)


def create_debug_interpreter() -> Session:
  """Factory function returning a debug session"""
  return create_interpreter(debug=True)


def evaluate(text: str, session: Optional[Session] = None) -> Literal:
  """Evaluate text in session, or in a fresh session"""
  if session is None:
    session = create_interpreter()
  return session.evaluate(text)


# ============================================================================
# SESSION ACTOR (Using Pykka)
# ============================================================================

class SessionActor(pykka.ThreadingActor):
  """Actor owning one session; messages are handled one at a time"""

  def __init__(self, debug: bool = False, logger=None):
    super().__init__()
    if logger is None and debug:
      logger = ConsoleLogger()
    self.session = Session(logger)

  def on_receive(self, message):
    """
    Handle {'command': ..., 'source': ...} messages

    Commands: evaluate, run, parse, variables, reset
    """
    command = message.get('command')
    source = message.get('source', '')

    if command == 'evaluate':
      return self.session.evaluate(source)
    elif command == 'run':
      return self.session.run(source)
    elif command == 'parse':
      return self.session.parse(source, message.get('leading_call', False))
    elif command == 'variables':
      return self.session.variables()
    elif command == 'reset':
      self.session.reset()
      return None
    raise InterpreterError(
      ErrorKind.UNEXPECTED,
      f"Unknown session command: {command}"
    )


def start_session_actor(debug: bool = False) -> pykka.ActorRef:
  """Start a session actor and return its reference"""
  return SessionActor.start(debug=debug)
