"""
Error taxonomy and error reports for the shexpr pipeline
One exception type is shared by the tokenizer, the parser and the evaluator
"""

from enum import Enum
from typing import Dict, Optional
from pyparsing import col, line, lineno


class ErrorKind(Enum):
    """Every failure the pipeline can report"""
    UNTOKENIZED = "untokenized"
    UNEXPECTED = "unexpected"
    SYNTAX_ERROR = "syntax error"
    INVALID_SOURCE = "invalid source"
    UNDEFINED_VARIABLE = "undefined variable"
    UNDEFINED_FUNCTION = "undefined function"
    INVALID_L_VARIABLE = "invalid left-hand variable"
    INVALID_RVALUE = "invalid right-hand value"
    TYPE_MISMATCH = "type mismatch"
    ZERO_STACK = "empty operand stack"
    CALCULATION_ERROR = "calculation error"


# Hints shown by the caller below the error message
ERROR_HINTS = {
    ErrorKind.UNTOKENIZED: "Only digits, letters and + - * / ( ) = ; $ \" ' are allowed",
    ErrorKind.UNEXPECTED: "Check the token under the caret",
    ErrorKind.SYNTAX_ERROR: "Check that every '(' and quote is closed",
    ErrorKind.INVALID_SOURCE: "Enter an expression, e.g. 1+2",
    ErrorKind.UNDEFINED_VARIABLE: "Assign the variable first, e.g. $a=5",
    ErrorKind.UNDEFINED_FUNCTION: "Built-in functions: calc, echo, abs, neg, len, str, int",
    ErrorKind.INVALID_L_VARIABLE: "Only a variable such as $a can be assigned to",
    ErrorKind.INVALID_RVALUE: "A value is missing on the right-hand side",
    ErrorKind.TYPE_MISMATCH: "Arithmetic is only defined between two numbers",
    ErrorKind.ZERO_STACK: None,
    ErrorKind.CALCULATION_ERROR: None,
}


class InterpreterError(Exception):
    """Failure raised by any stage of the pipeline"""

    def __init__(self, kind: ErrorKind, message: str = "", position: Optional[int] = None):
        self.kind = kind
        self.message = message or kind.value
        self.position = position
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        if self.position is not None:
            return f"{self.kind.value} at offset {self.position}: {self.message}"
        return f"{self.kind.value}: {self.message}"


# ============================================================================
# ERROR REPORTS (Immutable Dictionaries)
# ============================================================================

def make_error_report(error: InterpreterError, source: str = "") -> Dict:
    """Create an immutable report describing where and why evaluation failed"""
    line_num = None
    column = None
    context = None

    if error.position is not None and source:
        loc = min(error.position, len(source))
        line_num = lineno(loc, source)
        column = col(loc, source)
        context = get_context(source, loc)

    return {
        'kind': error.kind,
        'title': error.kind.value.capitalize(),
        'message': error.message,
        'position': error.position,
        'line': line_num,
        'column': column,
        'context': context,
        'hint': ERROR_HINTS.get(error.kind),
    }


def get_context(source: str, loc: int) -> str:
    """Source line holding loc with a caret under the offending column"""
    source_line = line(loc, source)
    return f"  {source_line}\n  {' ' * (col(loc, source) - 1)}^"


def format_error_report(report: Dict) -> str:
    """Format an error report as text for the user"""
    if report['line'] is not None:
        error_msg = f"{report['title']} at line {report['line']}, column {report['column']}:\n"
    else:
        error_msg = f"{report['title']}:\n"
    error_msg += f"  {report['message']}\n"

    if report['context']:
        error_msg += f"{report['context']}\n"

    if report['hint']:
        error_msg += f"  Hint: {report['hint']}\n"

    return error_msg


def format_error(error: InterpreterError, source: str = "") -> str:
    """Report and format an error in one step"""
    return format_error_report(make_error_report(error, source))
