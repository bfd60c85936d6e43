# bigcalc.py

"""
Arbitrary-precision integer calculator REPL.

Each input line goes through three stages: the Lexer turns the text into tokens, the recursive descent Parser
builds an expression tree, and the Evaluator walks the tree against a variable environment that lives for the
whole session. The REPL reads lines, prints the value of each one (assignments and /help print nothing) and
reports errors by message without stopping.

Grammar:
    expr   : term ((PLUS|MINUS) term)*
    term   : factor ((MUL|DIV|POW) factor)*
    factor : NUMBER | VARIABLE | VARIABLE ASSIGN expr | ASSIGN factor expr
           | LPAREN expr RPAREN | (PLUS|MINUS) factor | COMMAND

'^' sits on the same tier as '*' and '/', so 2^3^2 is (2^3)^2.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional

from dotenv import find_dotenv, load_dotenv
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

logger = logging.getLogger(__name__)


# ---------------------------
# Error Classes
# ---------------------------

class ErrorKind:
    """Enumeration of error kinds reported to the user."""
    SYNTAX = 'SYNTAX'
    INVALID_IDENTIFIER = 'INVALID_IDENTIFIER'
    INVALID_ASSIGNMENT = 'INVALID_ASSIGNMENT'
    UNKNOWN_VARIABLE = 'UNKNOWN_VARIABLE'
    UNKNOWN_COMMAND = 'UNKNOWN_COMMAND'
    INVALID_EXPRESSION = 'INVALID_EXPRESSION'
    ARITHMETIC = 'ARITHMETIC'


class CalculatorError(Exception):
    """Base class for calculator errors. str(error) is exactly what the REPL prints."""
    kind = ErrorKind.SYNTAX
    default_message = "Invalid syntax"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class LexerError(CalculatorError):
    """Raised for characters the lexer does not recognize."""
    default_message = "Invalid character"


class ParseError(CalculatorError):
    """Raised when a factor cannot start with the current token."""
    pass


class InvalidIdentifier(CalculatorError):
    kind = ErrorKind.INVALID_IDENTIFIER
    default_message = "Invalid identifier"


class InvalidAssignment(CalculatorError):
    kind = ErrorKind.INVALID_ASSIGNMENT
    default_message = "Invalid assignment"


class UnknownVariable(CalculatorError):
    kind = ErrorKind.UNKNOWN_VARIABLE
    default_message = "Unknown variable"


class UnknownCommand(CalculatorError):
    kind = ErrorKind.UNKNOWN_COMMAND
    default_message = "Unknown command"


class InvalidExpression(CalculatorError):
    kind = ErrorKind.INVALID_EXPRESSION
    default_message = "Invalid expression"


class EvalError(CalculatorError):
    """Raised for arithmetic failures: division by zero, unusable exponents."""
    kind = ErrorKind.ARITHMETIC
    default_message = "Arithmetic error"


# ---------------------------
# Tokenizer
# ---------------------------

class TokenType:
    """Enumeration of token types."""
    NUMBER = 'NUMBER'
    PLUS = 'PLUS'
    MINUS = 'MINUS'
    MUL = 'MUL'
    DIV = 'DIV'
    POW = 'POW'
    LPAREN = 'LPAREN'
    RPAREN = 'RPAREN'
    ASSIGN = 'ASSIGN'
    VARIABLE = 'VARIABLE'
    COMMAND = 'COMMAND'
    EOF = 'EOF'


@dataclass(frozen=True)
class Token:
    """Represents a token with type, literal text, and character position."""
    type: str
    value: str
    pos: int = 0

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value!r}, pos={self.pos})"


_SINGLE_CHAR_TOKENS: Dict[str, str] = {
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.MUL,
    '/': TokenType.DIV,
    '^': TokenType.POW,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '=': TokenType.ASSIGN,
}

COMMANDS = ('help', 'exit')


class Lexer:
    """Tokenizer for calculator input.

    Produces NUMBER, VARIABLE, operator, parenthesis and COMMAND tokens, always terminated by EOF.
    Numbers carry no sign; '-' is always an operator token.
    """
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.len = len(text)
        self.paren_balance = 0
        self.tokens: List[Token] = []

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < self.len else ''

    def _advance(self) -> None:
        self.pos += 1

    def _skip_whitespace(self) -> None:
        while self._peek() and self._peek().isspace():
            self._advance()

    def _check_adjacent(self, kind: str) -> None:
        """A number may not follow a variable and a variable may not follow a number."""
        if self.tokens and self.tokens[-1].type == kind:
            if any(tok.type == TokenType.ASSIGN for tok in self.tokens):
                raise InvalidAssignment()
            raise InvalidIdentifier()

    def _read_number(self) -> Token:
        self._check_adjacent(TokenType.VARIABLE)
        start = self.pos
        while self._peek() and self._peek().isdecimal():
            self._advance()
        return Token(TokenType.NUMBER, self.text[start:self.pos], start)

    def _read_variable(self) -> Token:
        self._check_adjacent(TokenType.NUMBER)
        start = self.pos
        while self._peek() and self._peek().isalpha():
            # Letters outside a-z/A-Z are alphabetic but not valid in a name.
            if not self._peek().isascii():
                raise InvalidIdentifier()
            self._advance()
        return Token(TokenType.VARIABLE, self.text[start:self.pos], start)

    def _rewrite_command(self) -> None:
        """Turn a leading '/' followed by a word into a single COMMAND token."""
        if len(self.tokens) < 2:
            return
        slash, word = self.tokens[0], self.tokens[1]
        if slash.type != TokenType.DIV or word.type != TokenType.VARIABLE:
            return
        if word.value not in COMMANDS:
            raise UnknownCommand()
        self.tokens[:2] = [Token(TokenType.COMMAND, word.value, slash.pos)]

    def tokenize(self) -> List[Token]:
        while True:
            self._skip_whitespace()
            ch = self._peek()
            if ch == '':
                break
            if ch.isdecimal():
                self.tokens.append(self._read_number())
            elif ch.isalpha():
                self.tokens.append(self._read_variable())
            elif ch in _SINGLE_CHAR_TOKENS:
                kind = _SINGLE_CHAR_TOKENS[ch]
                if kind == TokenType.ASSIGN and any(tok.type == TokenType.ASSIGN for tok in self.tokens):
                    raise InvalidAssignment()
                if kind == TokenType.LPAREN:
                    self.paren_balance += 1
                elif kind == TokenType.RPAREN:
                    self.paren_balance -= 1
                self.tokens.append(Token(kind, ch, self.pos))
                self._advance()
            else:
                raise LexerError(f"Invalid character: {ch}")
        self._rewrite_command()
        self.tokens.append(Token(TokenType.EOF, '', self.pos))
        if self.paren_balance != 0:
            raise InvalidExpression()
        return self.tokens


def tokenize(text: str) -> List[Token]:
    return Lexer(text).tokenize()


# ---------------------------
# AST Nodes
# ---------------------------

class NodeType:
    """Enumeration of expression tree node kinds."""
    NUMBER = 'NUMBER'
    VARIABLE = 'VARIABLE'
    PLUS = 'PLUS'
    MINUS = 'MINUS'
    MUL = 'MUL'
    DIV = 'DIV'
    POW = 'POW'
    ASSIGN = 'ASSIGN'
    UNARY_PLUS = 'UNARY_PLUS'
    UNARY_MINUS = 'UNARY_MINUS'
    COMMAND = 'COMMAND'


@dataclass(frozen=True)
class ASTNode:
    """Base AST node."""

    @property
    def type(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Number(ASTNode):
    text: str

    @property
    def type(self) -> str:
        return NodeType.NUMBER


@dataclass(frozen=True)
class Variable(ASTNode):
    name: str

    @property
    def type(self) -> str:
        return NodeType.VARIABLE


@dataclass(frozen=True)
class Command(ASTNode):
    name: str

    @property
    def type(self) -> str:
        return NodeType.COMMAND


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    op: str
    left: ASTNode
    right: ASTNode

    @property
    def type(self) -> str:
        return self.op


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    op: str
    operand: ASTNode

    @property
    def type(self) -> str:
        return self.op


@dataclass(frozen=True)
class Assignment(ASTNode):
    name: str
    value: ASTNode

    @property
    def type(self) -> str:
        return NodeType.ASSIGN


# ---------------------------
# Parser
# ---------------------------

_ADDITIVE = {TokenType.PLUS: NodeType.PLUS, TokenType.MINUS: NodeType.MINUS}
_MULTIPLICATIVE = {TokenType.MUL: NodeType.MUL, TokenType.DIV: NodeType.DIV, TokenType.POW: NodeType.POW}


class Parser:
    """Recursive descent parser over the token list produced by the Lexer."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TokenType.EOF:
            self.pos += 1
        return tok

    def parse(self) -> ASTNode:
        """Parses the tokens and returns the root AST node."""
        try:
            node = self.expr()
        except RecursionError:
            raise InvalidExpression()
        tok = self._current()
        if tok.type == TokenType.ASSIGN:
            raise InvalidAssignment()
        if tok.type != TokenType.EOF:
            raise InvalidExpression()
        return node

    def expr(self) -> ASTNode:
        node = self.term()
        while self._current().type in _ADDITIVE:
            op = _ADDITIVE[self._advance().type]
            node = BinaryOp(op, node, self.term())
        return node

    def term(self) -> ASTNode:
        node = self.factor()
        while self._current().type in _MULTIPLICATIVE:
            op = _MULTIPLICATIVE[self._advance().type]
            node = BinaryOp(op, node, self.factor())
        return node

    def factor(self) -> ASTNode:
        tok = self._current()
        if tok.type == TokenType.NUMBER:
            self._advance()
            return Number(tok.value)
        if tok.type == TokenType.VARIABLE:
            self._advance()
            if self._current().type == TokenType.ASSIGN:
                self._advance()
                return Assignment(tok.value, self.expr())
            return Variable(tok.value)
        if tok.type == TokenType.ASSIGN:
            # Prefix form "= name expr"; the target still has to be a plain name.
            self._advance()
            target = self.factor()
            if not isinstance(target, Variable):
                raise InvalidAssignment()
            return Assignment(target.name, self.expr())
        if tok.type == TokenType.LPAREN:
            self._advance()
            node = self.expr()
            if self._current().type != TokenType.RPAREN:
                raise InvalidExpression()
            self._advance()
            return node
        if tok.type == TokenType.PLUS:
            self._advance()
            return UnaryOp(NodeType.UNARY_PLUS, self.factor())
        if tok.type == TokenType.MINUS:
            self._advance()
            return UnaryOp(NodeType.UNARY_MINUS, self.factor())
        if tok.type == TokenType.COMMAND:
            self._advance()
            return Command(tok.value)
        raise ParseError()


def parse(tokens: List[Token]) -> ASTNode:
    return Parser(tokens).parse()


# ---------------------------
# Evaluator
# ---------------------------

HELP_TEXT = """\
Commands:
help - Display this help message
exit - Exit the program"""

FAREWELL = "Bye!"

MAX_EXPONENT = 2 ** 31 - 1


@dataclass(frozen=True)
class Evaluation:
    """Value of one evaluated line and whether the REPL should echo it."""
    value: int
    suppress_output: bool = False


def _truncating_div(left: int, right: int) -> int:
    if right == 0:
        raise EvalError("Division by zero")
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


def _power(base: int, exponent: int) -> int:
    if exponent < 0:
        raise EvalError("Negative exponent")
    if exponent > MAX_EXPONENT:
        raise EvalError("Exponent too large")
    return base ** exponent


_BINARY_OPS = {
    NodeType.PLUS: lambda l, r: l + r,
    NodeType.MINUS: lambda l, r: l - r,
    NodeType.MUL: lambda l, r: l * r,
    NodeType.DIV: _truncating_div,
    NodeType.POW: _power,
}


def _lift_int_digit_limit() -> None:
    """Literals and results are unbounded in both directions of int <-> str."""
    if hasattr(sys, "set_int_max_str_digits"):
        sys.set_int_max_str_digits(0)


class Evaluator:
    """
    Walks an AST against the session's variable environment.
    One instance lives for the whole session; assignments mutate `variables`.
    """
    def __init__(self):
        self.variables: Dict[str, int] = {}
        self._suppress = False
        _lift_int_digit_limit()

    def evaluate(self, node: ASTNode) -> Evaluation:
        """Evaluate a whole line's tree, reporting whether its value should be printed."""
        self._suppress = False
        try:
            value = self.eval(node)
        except RecursionError:
            raise InvalidExpression()
        return Evaluation(value, self._suppress)

    def eval(self, node: ASTNode) -> int:
        """
        Recursively evaluates the AST node.
        """
        if isinstance(node, Number):
            return int(node.text)
        if isinstance(node, Variable):
            if node.name not in self.variables:
                raise UnknownVariable()
            return self.variables[node.name]
        if isinstance(node, Assignment):
            value = self.eval(node.value)
            self.variables[node.name] = value
            self._suppress = True
            logger.debug("Assigned %s", node.name)
            return value
        if isinstance(node, Command):
            return self._run_command(node.name)
        if isinstance(node, BinaryOp):
            if node.op not in _BINARY_OPS:
                raise EvalError(f"Unknown binary operator: {node.op}")
            left = self.eval(node.left)
            right = self.eval(node.right)
            return _BINARY_OPS[node.op](left, right)
        if isinstance(node, UnaryOp):
            operand = self.eval(node.operand)
            if node.op == NodeType.UNARY_PLUS:
                return operand
            if node.op == NodeType.UNARY_MINUS:
                return -operand
            raise EvalError(f"Unknown unary operator: {node.op}")
        raise EvalError(f"Unsupported AST node: {type(node).__name__}")

    def _run_command(self, name: str) -> int:
        if name == 'help':
            print(HELP_TEXT)
            self._suppress = True
            return 0
        if name == 'exit':
            print(FAREWELL)
            logger.debug("Exit command received")
            sys.exit(0)
        raise UnknownCommand()


# ---------------------------
# CLI Handler (REPL)
# ---------------------------

@dataclass(frozen=True)
class LineResult:
    """Outcome of one input line: a value, a suppressed value, or an error."""
    value: Optional[int] = None
    suppress_output: bool = False
    error: Optional[CalculatorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def output(self) -> Optional[str]:
        """Text the REPL prints for this line, or None when nothing is printed."""
        if self.error is not None:
            return str(self.error)
        if self.suppress_output:
            return None
        return str(self.value)


class REPL:
    """Read-Eval-Print Loop for the calculator."""

    def __init__(self, prompt: str = ''):
        self.prompt = prompt
        self.evaluator = Evaluator()
        self.session: Optional[PromptSession] = None

    def evaluate_line(self, line: str) -> LineResult:
        """Run one line through lexer, parser and evaluator. Never raises CalculatorError."""
        try:
            tokens = Lexer(line).tokenize()
            logger.debug("Tokens: %s", tokens)
            ast = Parser(tokens).parse()
            logger.debug("AST: %s", ast)
            result = self.evaluator.evaluate(ast)
        except CalculatorError as e:
            logger.info("%s error on %r: %s", e.kind, line, e)
            return LineResult(error=e)
        return LineResult(value=result.value, suppress_output=result.suppress_output)

    def _read_line(self) -> str:
        if not sys.stdin.isatty():
            return input(self.prompt)
        if self.session is None:
            self.session = PromptSession(history=InMemoryHistory())
        return self.session.prompt(self.prompt)

    def run(self) -> None:
        """
        Main REPL loop. Ends on EOF; /exit ends the process from inside the evaluator.
        """
        while True:
            try:
                line = self._read_line()
            except KeyboardInterrupt:
                print("^C")
                continue
            except EOFError:
                break
            if not line:
                continue
            output = self.evaluate_line(line).output
            if output is not None:
                print(output)


# ---------------------------
# Main Entry Point
# ---------------------------

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Arbitrary-precision integer calculator.")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=os.getenv("BIGCALC_LOG_LEVEL", "WARNING"),
        help="Logging level for diagnostics on stderr (default: WARNING, env BIGCALC_LOG_LEVEL).",
    )
    parser.add_argument(
        "--prompt",
        type=str,
        default=os.getenv("BIGCALC_PROMPT", ""),
        help="Prompt shown before each line (default: none, env BIGCALC_PROMPT).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the calculator application.
    """
    # Load environment variables from a .env file in the working directory
    load_dotenv(find_dotenv(usecwd=True))
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    # argparse does not check defaults against choices, so a bad BIGCALC_LOG_LEVEL lands here.
    if args.log_level not in LOG_LEVELS:
        parser.error(f"argument --log-level: invalid choice: {args.log_level!r} (choose from {', '.join(LOG_LEVELS)})")

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    REPL(prompt=args.prompt).run()
    return 0


if __name__ == '__main__':
    sys.exit(main())
