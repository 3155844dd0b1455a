"""
Evaluator and session tests
"""

import pytest
from error_handling import ErrorKind, InterpreterError
from interpreter import (
  Session,
  StackMachine,
  create_debug_interpreter,
  create_interpreter,
  evaluate,
)
from parsing import AstNode, NodeKind
from stdlib import Literal, apply_operator, make_num, make_string


def num_node(value):
  return AstNode(NodeKind.NUM, value)


class TestArithmetic:
  """Test integer arithmetic through the whole pipeline"""

  @pytest.mark.parametrize("text, expected", [
    ("5+6*7", 47),
    ("5*(9-6)", 15),
    ("(3+5)/2", 4),
    ("-10+(+20)", 10),
    ("7/2", 3),
    ("-7/2", -3),
    ("7/-2", -3),
    ("-7/-2", 3),
    ("10-4-3", 3),
    ("2*3*4", 24),
    ("((((1))))", 1),
  ])
  def test_evaluate(self, session, text, expected):
    assert session.evaluate(text) == make_num(expected)

  @pytest.mark.parametrize("n", [0, 1, 9, 42, 1000, 2147483647])
  def test_numerals_evaluate_to_themselves(self, session, n):
    assert session.evaluate(str(n)) == Literal("Num", n)

  def test_division_by_zero(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("1/0")
    assert excinfo.value.kind is ErrorKind.CALCULATION_ERROR
    assert excinfo.value.position == 1

  def test_overflow(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("2147483647+1")
    assert excinfo.value.kind is ErrorKind.CALCULATION_ERROR

  def test_smallest_integer_is_reachable(self, session):
    assert session.evaluate("-2147483647-1").value == -2147483648


class TestVariables:
  """Test assignment and lookup in one session"""

  def test_assign_then_read(self, session):
    assert session.evaluate("$a=5") == make_num(5)
    assert session.evaluate("$a") == make_num(5)

  def test_assignment_is_an_expression(self, session):
    assert session.evaluate("($a=5)+1") == make_num(6)
    assert session.evaluate("$a*$a") == make_num(25)

  def test_chained_assignment(self, session):
    session.evaluate("$a=$b=3")
    assert session.variables() == {'a': make_num(3), 'b': make_num(3)}

  def test_overwrite(self, session):
    session.evaluate("$a=1")
    session.evaluate("$a=$a+1")
    assert session.evaluate("$a") == make_num(2)

  def test_undefined_variable(self, session):
    session.evaluate("$a=5")
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("$b*$a")
    assert excinfo.value.kind is ErrorKind.UNDEFINED_VARIABLE
    assert excinfo.value.position == 0

  def test_sessions_are_independent(self):
    first = create_interpreter()
    second = create_interpreter()
    first.evaluate("$a=1")
    with pytest.raises(InterpreterError):
      second.evaluate("$a")

  def test_failed_assignment_keeps_old_value(self, session):
    session.evaluate("$a=1")
    with pytest.raises(InterpreterError):
      session.evaluate("$a=1/0")
    assert session.evaluate("$a") == make_num(1)

  def test_string_variable(self, session):
    session.evaluate("$s='hi there'")
    assert session.evaluate("$s") == make_string("hi there")

  def test_invalid_assignment_target(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("5=3")
    assert excinfo.value.kind is ErrorKind.INVALID_L_VARIABLE

  def test_reset(self, session):
    session.evaluate("$a=1")
    session.reset()
    assert session.variables() == {}


class TestTypes:
  """Test runtime type checks"""

  def test_mixed_operands(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("1+'a'")
    assert excinfo.value.kind is ErrorKind.TYPE_MISMATCH

  def test_strings_have_no_arithmetic(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("'a'+'b'")
    assert excinfo.value.kind is ErrorKind.TYPE_MISMATCH

  def test_unary_minus_on_string(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("-abc")
    assert excinfo.value.kind is ErrorKind.TYPE_MISMATCH

  def test_string_literal(self, session):
    assert str(session.evaluate("hello")) == "hello"


class TestFunctions:
  """Test built-in calls in command lines and nested calls"""

  def test_calc(self, session):
    assert session.run("calc 5+6*7") == make_num(47)

  def test_nested_call(self, session):
    assert session.evaluate("$(abs -5)*2") == make_num(10)

  def test_nested_word_that_is_not_a_builtin(self, session):
    assert session.evaluate("$(hello)") == make_string("hello")

  def test_nested_non_builtin_in_arithmetic(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("$(x + 1)")
    assert excinfo.value.kind is ErrorKind.TYPE_MISMATCH

  def test_echo(self, session):
    assert session.run("echo 1+2") == make_string("3")
    assert session.run("echo") == make_string("")

  def test_len_and_int(self, session):
    assert session.run("len 'four'") == make_num(4)
    assert session.evaluate("$(int '12')+1") == make_num(13)

  def test_unknown_function(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.run("5+6*7")
    assert excinfo.value.kind is ErrorKind.UNDEFINED_FUNCTION
    assert excinfo.value.position == 0

  def test_missing_argument(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.run("calc")
    assert excinfo.value.kind is ErrorKind.INVALID_RVALUE

  def test_wrong_argument_type(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.run("abs 'x'")
    assert excinfo.value.kind is ErrorKind.TYPE_MISMATCH

  def test_call_result_usable_in_arithmetic(self, session):
    session.evaluate("$a=$(neg 4)")
    assert session.evaluate("$a*$a") == make_num(16)


class TestPrograms:
  """Test multi-statement command lines"""

  def test_last_value_is_result(self, session):
    assert session.run("calc $a=2; $b=3; $a*$b") == make_num(6)

  def test_return_stops_the_program(self, session):
    assert session.run("calc $a=1; return $a; $a=2") == make_num(1)
    assert session.variables()['a'] == make_num(1)

  def test_nested_return_is_transparent(self, session):
    assert session.evaluate("$(return 4)+1") == make_num(5)

  def test_error_aborts_remaining_statements(self, session):
    with pytest.raises(InterpreterError):
      session.run("calc $a=1; $b; $a=2")
    assert session.variables() == {'a': make_num(1)}

  def test_same_text_same_result(self):
    text = "calc $x=(3+5)/2; $x*3"
    assert create_interpreter().run(text) == create_interpreter().run(text)


class TestStackMachine:
  """Test the stack machine on hand-built trees"""

  def test_leaves_are_pushed(self):
    machine = StackMachine()
    assert machine.execute(num_node(3)) == make_num(3)
    assert machine.stack == [make_num(3)]

  def test_operator_consumes_two_values(self):
    machine = StackMachine()
    node = AstNode(NodeKind.SUB, None, (num_node(9), num_node(4)))
    assert machine.execute(node) == make_num(5)
    assert machine.stack == [make_num(5)]

  def test_call_takes_at_most_one_argument(self):
    machine = StackMachine()
    node = AstNode(NodeKind.FUNC, "abs", (num_node(1), num_node(2)))
    with pytest.raises(InterpreterError) as excinfo:
      machine.execute(node)
    assert excinfo.value.kind is ErrorKind.CALCULATION_ERROR
    assert "at most one argument" in excinfo.value.message

  def test_binary_node_needs_two_children(self):
    machine = StackMachine()
    node = AstNode(NodeKind.ADD, None, (num_node(1),))
    with pytest.raises(InterpreterError) as excinfo:
      machine.execute(node)
    assert excinfo.value.kind is ErrorKind.CALCULATION_ERROR

  def test_assign_without_value(self):
    machine = StackMachine()
    node = AstNode(NodeKind.ASSIGN, None, (AstNode(NodeKind.LOCAL_VARIABLE, "a"),))
    with pytest.raises(InterpreterError) as excinfo:
      machine.execute(node)
    assert excinfo.value.kind is ErrorKind.INVALID_RVALUE

  def test_empty_stack(self):
    with pytest.raises(InterpreterError) as excinfo:
      apply_operator(NodeKind.ADD, [])
    assert excinfo.value.kind is ErrorKind.ZERO_STACK

  def test_non_operator_dispatch(self):
    with pytest.raises(InterpreterError) as excinfo:
      apply_operator(NodeKind.ASSIGN, [make_num(1), make_num(2)])
    assert excinfo.value.kind is ErrorKind.CALCULATION_ERROR

  def test_operand_order(self):
    stack = [make_num(20), make_num(4)]
    assert apply_operator(NodeKind.DIV, stack) == make_num(5)
    assert stack == [make_num(5)]


class TestTracing:
  """Tracing never changes results"""

  def test_recording_logger(self, recorder):
    traced = Session(recorder)
    assert traced.evaluate("$a=5+6*7") == create_interpreter().evaluate("$a=5+6*7")
    assert "Evaluating: ASSIGN" in recorder.messages
    assert "assign: a = 47" in recorder.messages

  def test_debug_interpreter(self, capsys):
    assert create_debug_interpreter().evaluate("1+2") == make_num(3)
    assert "[trace] Evaluating: ADD" in capsys.readouterr().out

  def test_module_evaluate(self):
    assert evaluate("(3+5)/2") == make_num(4)


class TestLongInput:
  """Test long and deeply nested lines"""

  def test_long_sum(self, session):
    assert session.evaluate("+".join(["1"] * 1000)) == make_num(1000)

  def test_long_difference_in_command_mode(self, session):
    assert session.run("calc " + "-".join(["1"] * 1000)) == make_num(-998)

  def test_long_product_of_sums(self, session):
    assert session.evaluate("*".join(["(1+1)"] * 30)) == make_num(2 ** 30)

  def test_long_sum_with_tracing(self, recorder):
    traced = Session(recorder)
    assert traced.evaluate("+".join(["1"] * 1000)) == make_num(1000)
    parsed = [m for m in recorder.messages if m.startswith("parsed: ")]
    assert len(parsed) == 1
    assert parsed[0].startswith("parsed: ADD[ADD[")

  def test_nesting_up_to_the_limit(self, session):
    assert session.evaluate("(" * 64 + "7" + ")" * 64) == make_num(7)

  def test_nesting_past_the_limit(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("(" * 200 + "1" + ")" * 200)
    assert excinfo.value.kind is ErrorKind.SYNTAX_ERROR
    assert excinfo.value.position == 64

  def test_long_assignment_chain(self, session):
    with pytest.raises(InterpreterError) as excinfo:
      session.evaluate("$a=" * 2000 + "1")
    assert excinfo.value.kind is ErrorKind.SYNTAX_ERROR

    # The session keeps working afterwards
    assert session.evaluate("1+1") == make_num(2)
