import re
import math
import logging
from typing import List

from Calculus.errors import ParseError, UnknownFunctionError
from Calculus.expression import (
    BinaryOperator, CONSTANT_NAMES, FUNCTION_NAMES, BinaryOp, Call, Constant,
    Expression, Number, Variable, neg,
)

# --- Logger Setup ---
logger = logging.getLogger(__name__)

# --- Tokenizer: Breaking the Expression into Tokens ---
TOKEN_NUMBER = 'NUMBER'
TOKEN_IDENTIFIER = 'IDENTIFIER'
TOKEN_OPERATOR = 'OPERATOR'
TOKEN_LPAREN = 'LPAREN'
TOKEN_RPAREN = 'RPAREN'
TOKEN_COMMA = 'COMMA'
TOKEN_EOF = 'EOF'

# Binding power of each binary operator and whether it groups to the right.
BINARY_OPERATORS = {
    '+': (1, BinaryOperator.ADD, False),
    '-': (1, BinaryOperator.SUB, False),
    '*': (2, BinaryOperator.MUL, False),
    '/': (2, BinaryOperator.DIV, False),
    '^': (4, BinaryOperator.POW, True),
}
UNARY_MINUS_PRECEDENCE = 3


class Token:
    def __init__(self, type, value, position):
        self.type = type
        self.value = value
        self.position = position

    def __repr__(self):
        return f"Token({self.type}, '{self.value}', {self.position})"


class Tokenizer:
    TOKEN_SPECS = [
        (r'\d+\.?\d*|\.\d+', TOKEN_NUMBER),
        (r'[a-zA-Z_][a-zA-Z0-9_]*', TOKEN_IDENTIFIER),
        (r'∞', TOKEN_IDENTIFIER),
        (r'[\+\-\*\/^]', TOKEN_OPERATOR),
        (r'\(', TOKEN_LPAREN),
        (r'\)', TOKEN_RPAREN),
        (r',', TOKEN_COMMA),
        (r'\s+', None),  # Skip whitespace
    ]
    _COMPILED_SPECS = [(re.compile(pattern), ttype) for pattern, ttype in TOKEN_SPECS]

    def __init__(self, text):
        self.text = text
        self.tokens = self._tokenize()
        self.index = 0

    def _tokenize(self) -> List[Token]:
        tokens = []
        pos = 0
        while pos < len(self.text):
            match_found = False
            for regex, ttype in self._COMPILED_SPECS:
                match = regex.match(self.text, pos)
                if match:
                    if ttype:
                        tokens.append(Token(ttype, match.group(0), pos))
                    pos = match.end()
                    match_found = True
                    break
            if not match_found:
                raise ParseError(f"Unexpected character '{self.text[pos]}'", pos)
        tokens.append(Token(TOKEN_EOF, "", len(self.text)))
        return tokens

    def next(self) -> Token:
        token = self.peek()
        if self.index < len(self.tokens):
            self.index += 1
        return token

    def peek(self) -> Token:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return Token(TOKEN_EOF, "", len(self.text))


# --- Parser: Building the AST from Tokens ---
class Parser:
    """Precedence-climbing parser.

    Precedence, low to high: ``+ -``, ``* /``, unary minus, ``^`` (right
    associative). Multiplication must be written out: ``2x`` is rejected.
    """

    def __init__(self, tokenizer):
        self.tokenizer = tokenizer
        self.current_token = self.tokenizer.next()

    def _advance(self):
        token = self.current_token
        self.current_token = self.tokenizer.next()
        return token

    def _eat(self, token_type):
        if self.current_token.type != token_type:
            if token_type == TOKEN_RPAREN:
                raise ParseError("Unbalanced parentheses: missing ')'", self.current_token.position)
            raise ParseError(
                f"Expected {token_type}, but got '{self.current_token.value}'",
                self.current_token.position,
            )
        return self._advance()

    def parse(self) -> Expression:
        if self.current_token.type == TOKEN_EOF:
            raise ParseError("Expression cannot be empty", 0)
        result = self._expression(0)
        if self.current_token.type == TOKEN_RPAREN:
            raise ParseError("Unbalanced parentheses: unexpected ')'", self.current_token.position)
        if self.current_token.type != TOKEN_EOF:
            raise ParseError(
                f"Unexpected token '{self.current_token.value}' (use an explicit operator)",
                self.current_token.position,
            )
        return result

    def _expression(self, min_precedence):
        node = self._prefix()
        while self.current_token.type == TOKEN_OPERATOR:
            precedence, op, right_assoc = BINARY_OPERATORS[self.current_token.value]
            if precedence < min_precedence:
                break
            self._advance()
            # a '-' here is unary and is handled by _prefix
            self._reject_operator(allow_minus=True)
            next_min = precedence if right_assoc else precedence + 1
            right = self._expression(next_min)
            node = BinaryOp(op, node, right)
        return node

    def _reject_operator(self, allow_minus=False):
        token = self.current_token
        if token.type == TOKEN_OPERATOR and not (allow_minus and token.value == '-'):
            raise ParseError(f"Consecutive operators are not allowed: '{token.value}'", token.position)
        if token.type == TOKEN_EOF:
            raise ParseError("Expression ends with an operator", token.position)

    def _prefix(self):
        token = self.current_token
        if token.type == TOKEN_OPERATOR:
            if token.value != '-':
                raise ParseError(f"Unexpected operator '{token.value}'", token.position)
            self._advance()
            self._reject_operator()
            return neg(self._expression(UNARY_MINUS_PRECEDENCE))
        return self._atom()

    def _atom(self):
        token = self.current_token
        if token.type == TOKEN_NUMBER:
            value = float(token.value)
            if math.isinf(value):
                raise ParseError("Number is too large to represent", token.position)
            self._advance()
            return Number(value)
        if token.type == TOKEN_IDENTIFIER:
            self._advance()
            if self.current_token.type == TOKEN_LPAREN:
                return self._call(token)
            name = token.value
            if name == '∞':
                name = 'inf'
            if name in CONSTANT_NAMES:
                return Constant(CONSTANT_NAMES[name])
            if name in FUNCTION_NAMES:
                raise ParseError(f"Function '{name}' needs parentheses around its argument", token.position)
            return Variable(name)
        if token.type == TOKEN_LPAREN:
            self._advance()
            node = self._group()
            self._eat(TOKEN_RPAREN)
            return node
        if token.type == TOKEN_RPAREN:
            raise ParseError("Unbalanced parentheses: unexpected ')'", token.position)
        if token.type == TOKEN_EOF:
            raise ParseError("Unexpected end of expression", token.position)
        raise ParseError(f"Unexpected token '{token.value}'", token.position)

    def _group(self):
        if self.current_token.type == TOKEN_RPAREN:
            raise ParseError("Empty parentheses", self.current_token.position)
        return self._expression(0)

    def _call(self, name_token):
        function = FUNCTION_NAMES.get(name_token.value)
        if function is None:
            raise UnknownFunctionError(name_token.value, name_token.position)
        self._eat(TOKEN_LPAREN)
        argument = self._group()
        if self.current_token.type == TOKEN_COMMA:
            raise ParseError(f"{function.value} expects exactly one argument", self.current_token.position)
        self._eat(TOKEN_RPAREN)
        return Call(function, argument)


def parse_expression(source: str) -> Expression:
    if source is None or not source.strip():
        raise ParseError("Expression cannot be empty", 0)
    tokenizer = Tokenizer(source)
    result = Parser(tokenizer).parse()
    logger.debug("Parsed %r into %r", source, result)
    return result


parse = parse_expression
