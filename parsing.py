"""
shexpr Tokenizer and Parser
Hand-written tokenizer, token cursor and precedence-climbing AST builder
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple
import re

from error_handling import ErrorKind, InterpreterError
from utilities import ConsoleLogger, in_i32_range, is_tracing, resolve_logger


# ============================================================================
# TOKENS
# ============================================================================

class TokenKind(Enum):
    RESERVED = "reserved"
    STRING = "string"
    NUM = "num"
    FUNCCALL = "funccall"
    RETURN = "return"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    """Token with its offset and exact text in the source"""
    kind: TokenKind
    value: Any
    position: int
    text: str

    def __str__(self) -> str:
        if self.kind is TokenKind.EOF:
            return "end of input"
        return f"{self.kind.value}({self.text})"


RESERVED_SYMBOLS = frozenset("+-*/()=;$\"'")

# Characters that can never be part of an identifier or bare string
EXCLUDED_CHARACTERS = frozenset("=+-*/!@#$%^&¥|`~.,:;'\"<>()[]{}")


class Tokenizer:
    """Turns one line of source text into a list of tokens"""

    def __init__(self, logger=None, call_names=None):
        self.logger = resolve_logger(logger)
        if call_names is None:
            call_names = self._builtin_call_names()
        self.call_names = frozenset(call_names)
        self._setup_token_patterns()

    @staticmethod
    def _builtin_call_names():
        # stdlib imports this module, so the table is looked up at construction
        from stdlib import BUILTIN_FUNCTIONS
        return BUILTIN_FUNCTIONS.keys()

    def _setup_token_patterns(self):
        # First whitespace-delimited word of a command line
        self.leading_word_pattern = re.compile(r'\s*(\S+)')

        # Decimal integer literal, unsigned
        self.number_pattern = re.compile(r'[0-9]+')

        self.return_keyword = "return"

    def tokenize(self, source: str, leading_call: bool = True) -> 'TokenCursor':
        """
        Tokenize source and return a cursor positioned on the first token

        With leading_call the first word of the input is a function-call
        token whatever characters it contains.
        """
        self.logger.print(f"input code: {source}")
        tokens: List[Token] = []
        pos = 0

        if leading_call:
            word_match = self.leading_word_pattern.match(source)
            if word_match:
                word = word_match.group(1)
                tokens.append(Token(TokenKind.FUNCCALL, word, word_match.start(1), word))
                self.logger.print(f"funccall token: {word}")
                pos = word_match.end(1)

        while pos < len(source):
            if source[pos].isspace():
                pos += 1
                continue

            token = self._match_token_at_position(source, pos, tokens)
            if token is None:
                char = source[pos]
                raise InterpreterError(
                    ErrorKind.UNTOKENIZED,
                    f"cannot tokenize '{char}'",
                    pos
                )
            self.logger.print(f"{token.kind.value} token: {token.value}")
            tokens.append(token)
            pos += len(token.text)

        tokens.append(Token(TokenKind.EOF, None, len(source), ""))
        return TokenCursor(tokens, source)

    def _match_token_at_position(self, source: str, pos: int, previous: List[Token]) -> Optional[Token]:
        """Match a token at pos using priority order"""
        char = source[pos]
        word = self._word_at(source, pos)

        # Priority 1: the return keyword
        if word == self.return_keyword:
            return Token(TokenKind.RETURN, word, pos, word)

        # Priority 2: reserved symbols
        if char in RESERVED_SYMBOLS:
            return Token(TokenKind.RESERVED, char, pos, char)

        # Priority 3: integer literals
        num_match = self.number_pattern.match(source, pos)
        if num_match:
            text = num_match.group(0)
            value = int(text)
            if not in_i32_range(value):
                raise InterpreterError(
                    ErrorKind.UNTOKENIZED,
                    f"integer literal {text} does not fit in 32 bits",
                    pos
                )
            return Token(TokenKind.NUM, value, pos, text)

        if not word:
            return None

        # Priority 4: built-in name right after "$(", as in "$(abs -5)"
        if self._opens_nested_call(previous) and word in self.call_names:
            end = pos + len(word)
            if end == len(source) or source[end].isspace() or source[end] == ')':
                return Token(TokenKind.FUNCCALL, word, pos, word)

        # Priority 5: identifiers and bare strings
        return Token(TokenKind.STRING, word, pos, word)

    def _word_at(self, source: str, pos: int) -> str:
        """Longest alphanumeric run at pos, cut at the first excluded character"""
        end = pos
        while end < len(source) and source[end].isalnum() and source[end] not in EXCLUDED_CHARACTERS:
            end += 1
        return source[pos:end]

    @staticmethod
    def _opens_nested_call(previous: List[Token]) -> bool:
        if len(previous) < 2:
            return False
        dollar, paren = previous[-2], previous[-1]
        return (dollar.kind is TokenKind.RESERVED and dollar.value == "$" and
                paren.kind is TokenKind.RESERVED and paren.value == "(")


class TokenCursor:
    """Read position over a fully built token list"""

    def __init__(self, tokens: List[Token], source: str = ""):
        if not tokens or tokens[-1].kind is not TokenKind.EOF:
            tokens = list(tokens) + [Token(TokenKind.EOF, None, len(source), "")]
        self.tokens = tokens
        self.source = source
        self.index = 0

    def peek(self) -> Token:
        return self.tokens[self.index]

    def peek_symbol(self, op: str) -> bool:
        token = self.peek()
        return token.kind is TokenKind.RESERVED and token.value == op

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind is not TokenKind.EOF:
            self.index += 1
        return token

    def consume(self, op: str) -> bool:
        """Advance and return True if the current token is the symbol op"""
        if self.peek_symbol(op):
            self._advance()
            return True
        return False

    def expect(self, op: str) -> None:
        """Advance past the symbol op or raise UNEXPECTED"""
        if not self.consume(op):
            token = self.peek()
            raise InterpreterError(
                ErrorKind.UNEXPECTED,
                f"expected '{op}' but found {token}",
                token.position
            )

    def expect_number(self) -> int:
        """Advance past a number token and return its value or raise UNEXPECTED"""
        token = self.peek()
        if token.kind is TokenKind.NUM:
            self._advance()
            return token.value
        raise InterpreterError(
            ErrorKind.UNEXPECTED,
            f"not a number: {token}",
            token.position
        )

    def consume_ident(self) -> Optional[str]:
        """Advance past an identifier-shaped string token and return its name"""
        token = self.peek()
        if token.kind is TokenKind.STRING and token.value[0].isalpha():
            self._advance()
            return token.value
        return None

    def consume_strings(self) -> Optional[str]:
        token = self.peek()
        if token.kind is TokenKind.STRING:
            self._advance()
            return token.value
        return None

    def consume_funccall(self) -> Optional[str]:
        token = self.peek()
        if token.kind is TokenKind.FUNCCALL:
            self._advance()
            return token.value
        return None

    def consume_return(self) -> bool:
        if self.peek().kind is TokenKind.RETURN:
            self._advance()
            return True
        return False

    def consume_any(self) -> Token:
        """Return the current token whatever it is and advance"""
        return self._advance()

    def at_eof(self) -> bool:
        return self.peek().kind is TokenKind.EOF


# ============================================================================
# ABSTRACT SYNTAX TREE
# ============================================================================

class NodeKind(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    ASSIGN = "="
    NUM = "num"
    STRING = "string"
    LOCAL_VARIABLE = "local variable"
    FUNC = "func"
    RETURN = "return"


BINARY_SYMBOLS = {
    "+": NodeKind.ADD,
    "-": NodeKind.SUB,
    "*": NodeKind.MUL,
    "/": NodeKind.DIV,
}


@dataclass(frozen=True)
class AstNode:
    """AST node; children are owned in evaluation order"""
    kind: NodeKind
    value: Any = None
    children: Tuple['AstNode', ...] = ()
    position: Optional[int] = None

    def label(self) -> str:
        return self.kind.name if self.value is None else f"{self.kind.name}({self.value!r})"

    def __str__(self) -> str:
        parts = []
        pending = [self]
        while pending:
            item = pending.pop()
            if isinstance(item, str):
                parts.append(item)
                continue
            parts.append(item.label())
            if item.children:
                pending.append("]")
                for index in range(len(item.children) - 1, 0, -1):
                    pending.append(item.children[index])
                    pending.append(", ")
                pending.append(item.children[0])
                pending.append("[")
        return "".join(parts)


# Deepest allowed nesting of "( ... )" and "$( ... )"
MAX_NESTING_DEPTH = 64


class AstBuilder:
    """
    Recursive-descent parser over a TokenCursor

    Grammar, lowest binding first:
        program := func stmt*
        func    := FUNCCALL stmt? | stmt
        stmt    := (RETURN expr | FUNCCALL stmt? | expr) ';'*
        expr    := assign
        assign  := add ('=' assign)?
        add     := mul (('+'|'-') mul)*
        mul     := unary (('*'|'/') unary)*
        unary   := ('+'|'-')? primary
        primary := '(' expr ')' | '$' '(' stmt ')' | '$' IDENT
                 | '"' chars* '"' | "'" chars* "'" | STRING | NUM
    """

    def __init__(self, cursor: TokenCursor, logger=None):
        self.cursor = cursor
        self.logger = resolve_logger(logger)
        self.depth = 0

    def build(self) -> Tuple[AstNode, ...]:
        """Parse a whole program into its top-level nodes"""
        self._reject_empty()
        nodes = [self.func()]
        while not self.cursor.at_eof():
            nodes.append(self.stmt())
        if is_tracing(self.logger):
            for node in nodes:
                self.logger.print(f"parsed: {node}")
        return tuple(nodes)

    def build_statement(self) -> AstNode:
        """Parse exactly one statement and require the end of input after it"""
        self._reject_empty()
        node = self.stmt()
        if not self.cursor.at_eof():
            token = self.cursor.peek()
            raise InterpreterError(
                ErrorKind.UNEXPECTED,
                f"unexpected {token} after the end of the statement",
                token.position
            )
        if is_tracing(self.logger):
            self.logger.print(f"parsed: {node}")
        return node

    def _reject_empty(self) -> None:
        if self.cursor.at_eof():
            raise InterpreterError(ErrorKind.INVALID_SOURCE, "empty program", 0)

    def func(self) -> AstNode:
        # A leading FUNCCALL is handled by stmt like any other call
        return self.stmt()

    def stmt(self) -> AstNode:
        position = self.cursor.peek().position
        if self.cursor.consume_return():
            node = AstNode(NodeKind.RETURN, None, (self.expr(),), position)
        else:
            name = self.cursor.consume_funccall()
            if name is not None:
                node = self.call(name, position)
            else:
                node = self.expr()
        self._skip_semicolons()
        return node

    def call(self, name: str, position: int) -> AstNode:
        """Function call with an optional single argument statement"""
        if self.cursor.at_eof() or self.cursor.peek_symbol(")") or self.cursor.peek_symbol(";"):
            return AstNode(NodeKind.FUNC, name, (), position)
        return AstNode(NodeKind.FUNC, name, (self.stmt(),), position)

    def _skip_semicolons(self) -> None:
        while self.cursor.consume(";"):
            pass

    def expr(self) -> AstNode:
        return self.assign()

    def assign(self) -> AstNode:
        node = self.add()
        position = self.cursor.peek().position
        if self.cursor.consume("="):
            if self.cursor.at_eof() or self.cursor.peek_symbol(";") or self.cursor.peek_symbol(")"):
                raise InterpreterError(
                    ErrorKind.INVALID_RVALUE,
                    "missing value after '='",
                    self.cursor.peek().position
                )
            node = AstNode(NodeKind.ASSIGN, None, (node, self.assign()), position)
        return node

    def add(self) -> AstNode:
        node = self.mul()
        while True:
            position = self.cursor.peek().position
            if self.cursor.consume("+"):
                node = AstNode(NodeKind.ADD, None, (node, self.mul()), position)
            elif self.cursor.consume("-"):
                node = AstNode(NodeKind.SUB, None, (node, self.mul()), position)
            else:
                return node

    def mul(self) -> AstNode:
        node = self.unary()
        while True:
            position = self.cursor.peek().position
            if self.cursor.consume("*"):
                node = AstNode(NodeKind.MUL, None, (node, self.unary()), position)
            elif self.cursor.consume("/"):
                node = AstNode(NodeKind.DIV, None, (node, self.unary()), position)
            else:
                return node

    def unary(self) -> AstNode:
        position = self.cursor.peek().position
        if self.cursor.consume("+"):
            return self.primary()
        if self.cursor.consume("-"):
            zero = AstNode(NodeKind.NUM, 0, (), position)
            return AstNode(NodeKind.SUB, None, (zero, self.primary()), position)
        return self.primary()

    def primary(self) -> AstNode:
        token = self.cursor.peek()

        if self.cursor.consume("("):
            return self._enclosed(token, self.expr)

        if self.cursor.consume("$"):
            if self.cursor.consume("("):
                return self._enclosed(token, self.stmt)
            name = self.cursor.consume_ident()
            if name is None:
                found = self.cursor.peek()
                raise InterpreterError(
                    ErrorKind.UNEXPECTED,
                    f"expected a variable name after '$' but found {found}",
                    found.position
                )
            return AstNode(NodeKind.LOCAL_VARIABLE, name, (), token.position)

        for quote in ('"', "'"):
            if self.cursor.consume(quote):
                return self._quoted(token, quote)

        word = self.cursor.consume_strings()
        if word is not None:
            return AstNode(NodeKind.STRING, word, (), token.position)

        return AstNode(NodeKind.NUM, self.cursor.expect_number(), (), token.position)

    def _enclosed(self, opening: Token, parse_inner) -> AstNode:
        """Parse the body of a parenthesized form and its closing ')'"""
        if self.depth >= MAX_NESTING_DEPTH:
            raise InterpreterError(
                ErrorKind.SYNTAX_ERROR,
                f"parentheses nested deeper than {MAX_NESTING_DEPTH} levels",
                opening.position
            )
        self.depth += 1
        try:
            if self.cursor.peek_symbol(")"):
                raise InterpreterError(
                    ErrorKind.SYNTAX_ERROR,
                    "empty parentheses",
                    opening.position
                )
            node = parse_inner()
            self.cursor.expect(")")
        except InterpreterError as e:
            if e.kind is ErrorKind.SYNTAX_ERROR:
                raise
            position = e.position if e.position is not None else opening.position
            raise InterpreterError(
                ErrorKind.SYNTAX_ERROR,
                f"malformed parenthesized expression: {e.message}",
                position
            ) from e
        finally:
            self.depth -= 1
        return node

    def _quoted(self, opening: Token, quote: str) -> AstNode:
        """Capture the raw source text up to the matching quote"""
        while True:
            token = self.cursor.peek()
            if token.kind is TokenKind.EOF:
                raise InterpreterError(
                    ErrorKind.SYNTAX_ERROR,
                    f"unterminated string starting with {quote}",
                    opening.position
                )
            self.cursor.consume_any()
            if token.kind is TokenKind.RESERVED and token.value == quote:
                text = self.cursor.source[opening.position + 1:token.position]
                return AstNode(NodeKind.STRING, text, (), opening.position)


# ============================================================================
# PARSER FACADE
# ============================================================================

class Parser:
    """Tokenizer and AST builder combined"""

    def __init__(self, logger=None):
        self.logger = resolve_logger(logger)

    def tokenize(self, text: str, leading_call: bool = True) -> TokenCursor:
        return Tokenizer(self.logger).tokenize(text, leading_call)

    def parse_program(self, text: str, leading_call: bool = True) -> Tuple[AstNode, ...]:
        """Parse a line into its top-level nodes"""
        cursor = self.tokenize(text, leading_call)
        return AstBuilder(cursor, self.logger).build()

    def parse_statement(self, text: str) -> AstNode:
        """Parse a line holding a single expression statement"""
        cursor = self.tokenize(text, leading_call=False)
        return AstBuilder(cursor, self.logger).build_statement()


def create_parser(debug: bool = False) -> Parser:
    """Create a parser, tracing to the console in debug mode"""
    return Parser(ConsoleLogger() if debug else None)


def create_debug_parser() -> Parser:
    return create_parser(debug=True)


def pretty_print_ast(node: AstNode, indent: int = 0) -> str:
    """Pretty print an AST node for debugging"""
    lines = []
    pending = [(node, indent)]
    while pending:
        current, depth = pending.pop()
        lines.append("  " * depth + current.label() + "\n")
        for child in reversed(current.children):
            pending.append((child, depth + 1))
    return "".join(lines)
