"""
shexpr - Main Entry Point
Evaluates expressions from the command line, a file, or an interactive prompt
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional
import os

# Readline support for history
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import InterpreterError, format_error
from interpreter import Session, create_interpreter
from parsing import pretty_print_ast
from stdlib import show


VERSION = "shexpr 0.3.0"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='shexpr - a small expression language with variables',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s -e '5+6*7'                 # Evaluate one expression
  %(prog)s -e '$a=5' -e '$a*2'        # Expressions share one session
  %(prog)s --command -e 'calc 1+2'    # First word is a function call
  %(prog)s lines.txt                  # Evaluate a file line by line
  %(prog)s -i --debug                 # Interactive mode with tracing
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='File with one expression per line'
  )

  parser.add_argument(
      '-e', '--eval',
      action='append',
      default=[],
      metavar='EXPR',
      help='Evaluate EXPR (may be repeated)'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--command',
      action='store_true',
      help='Treat the first word of each line as a function call'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Trace tokens, nodes and evaluation steps'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def evaluate_line(session: Session, line: str, command: bool = False) -> str:
  """Evaluate one line and return the display form of its value"""
  if command:
    return show(session.run(line))
  return show(session.evaluate(line))


def run_lines(lines: List[str], session: Session, command: bool = False,
              origin: str = "<eval>") -> int:
  """Evaluate lines in order, stopping at the first error. Returns the exit status."""
  for number, line in enumerate(lines, 1):
    if not line.strip() or line.lstrip().startswith('#'):
      continue
    try:
      print(evaluate_line(session, line, command))
    except InterpreterError as e:
      print(f"Error in {origin}, line {number}:")
      print(format_error(e, line), end='')
      return 1
  return 0


def run_script_file(script_path: str, session: Session, command: bool = False) -> int:
  """Evaluate every line of a file in one session"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      lines = f.read().splitlines()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found")
    return 1
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}")
    print("  Hint: Make sure the file is a text file with UTF-8 encoding")
    return 1

  return run_lines(lines, session, command, script_path)


def setup_readline() -> None:
  """Setup readline with a persistent history"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.shexpr_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet

  readline.set_history_length(1000)

  import atexit
  atexit.register(readline.write_history_file, history_file)


def print_help() -> None:
  print("REPL Commands:")
  print("  :parse <expr>     - Show the parsed AST")
  print("  :env              - Show current variables")
  print("  :reset            - Forget all variables")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language:")
  print("  5+6*7             - Arithmetic with + - * / and parentheses")
  print("  $a=5              - Assign a variable")
  print("  $a*2              - Read a variable")
  print("  'hello world'     - Quoted string")
  print("  $(abs -5)         - Call a built-in function")


def run_interactive_mode(session: Session, command: bool = False) -> None:
  """Read, evaluate and print lines until exit"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  print()

  setup_readline()

  while True:
    try:
      code = input("shexpr> ")
    except (EOFError, KeyboardInterrupt):
      print()
      break

    stripped = code.strip()
    if stripped == "exit":
      break
    if not stripped:
      continue

    if stripped.startswith(":parse "):
      expr_text = stripped[len(":parse "):]
      try:
        for node in session.parse(expr_text, leading_call=command):
          print(pretty_print_ast(node), end='')
      except InterpreterError as e:
        print(format_error(e, expr_text), end='')
      continue

    if stripped == ":env":
      variables = session.variables()
      if variables:
        for name, value in variables.items():
          print(f"  ${name} = {show(value)}")
      else:
        print("  (no variables)")
      continue

    if stripped == ":reset":
      session.reset()
      continue

    if stripped == ":help":
      print_help()
      continue

    try:
      print(evaluate_line(session, code, command))
    except InterpreterError as e:
      print(format_error(e, code), end='')


def main(argv: Optional[List[str]] = None) -> int:
  """Main entry point for shexpr"""
  args = create_arg_parser().parse_args(argv)
  session = create_interpreter(debug=args.debug)

  status = 0
  if args.eval:
    status = run_lines(args.eval, session, args.command)

  if status == 0 and args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      return 1
    status = run_script_file(args.script, session, args.command)

  if status == 0 and (args.interactive or not (args.eval or args.script)):
    run_interactive_mode(session, args.command)

  return status


if __name__ == "__main__":
  sys.exit(main())
