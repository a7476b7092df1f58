"""Lexical analysis of AtomC source text."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Iterable, List, Optional, TextIO, Union

from .errors import CompileError


class TokenCode(IntEnum):
    """Kinds of tokens."""

    ID = 0
    # keywords
    TYPE_CHAR = auto()
    TYPE_DOUBLE = auto()
    ELSE = auto()
    IF = auto()
    TYPE_INT = auto()
    RETURN = auto()
    STRUCT = auto()
    VOID = auto()
    WHILE = auto()
    # constants
    INT = auto()
    DOUBLE = auto()
    CHAR = auto()
    STRING = auto()
    # delimiters
    COMMA = auto()
    END = auto()
    SEMICOLON = auto()
    LPAR = auto()
    RPAR = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LACC = auto()
    RACC = auto()
    # operators
    ASSIGN = auto()
    EQUAL = auto()
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    DOT = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    NOTEQ = auto()
    LESS = auto()
    LESSEQ = auto()
    GREATER = auto()
    GREATEREQ = auto()


@dataclass
class Token:
    """A token with its source line and, for IDs and constants, its value."""

    code: TokenCode
    line: int
    value: Union[str, int, float, None] = None


_KEYWORDS = {
    "char": TokenCode.TYPE_CHAR,
    "double": TokenCode.TYPE_DOUBLE,
    "else": TokenCode.ELSE,
    "if": TokenCode.IF,
    "int": TokenCode.TYPE_INT,
    "return": TokenCode.RETURN,
    "struct": TokenCode.STRUCT,
    "void": TokenCode.VOID,
    "while": TokenCode.WHILE,
}

_SINGLE = {
    ",": TokenCode.COMMA,
    ".": TokenCode.DOT,
    ";": TokenCode.SEMICOLON,
    "(": TokenCode.LPAR,
    ")": TokenCode.RPAR,
    "[": TokenCode.LBRACKET,
    "]": TokenCode.RBRACKET,
    "{": TokenCode.LACC,
    "}": TokenCode.RACC,
    "+": TokenCode.ADD,
    "-": TokenCode.SUB,
    "*": TokenCode.MUL,
}

# first char -> (token when followed by "=", token otherwise)
_WITH_EQ = {
    "=": (TokenCode.EQUAL, TokenCode.ASSIGN),
    "!": (TokenCode.NOTEQ, TokenCode.NOT),
    "<": (TokenCode.LESSEQ, TokenCode.LESS),
    ">": (TokenCode.GREATEREQ, TokenCode.GREATER),
}

# doubled operators; a single one is silently skipped
_DOUBLED = {"&": TokenCode.AND, "|": TokenCode.OR}

_NAMES = {
    TokenCode.ID: "variable",
    TokenCode.TYPE_CHAR: "char",
    TokenCode.TYPE_DOUBLE: "double",
    TokenCode.ELSE: "else",
    TokenCode.IF: "if",
    TokenCode.TYPE_INT: "int",
    TokenCode.RETURN: "return",
    TokenCode.STRUCT: "struct",
    TokenCode.VOID: "void",
    TokenCode.WHILE: "while",
    TokenCode.COMMA: ",",
    TokenCode.SEMICOLON: ";",
    TokenCode.LPAR: "(",
    TokenCode.RPAR: ")",
    TokenCode.LBRACKET: "[",
    TokenCode.RBRACKET: "]",
    TokenCode.LACC: "{",
    TokenCode.RACC: "}",
    TokenCode.END: "end",
    TokenCode.ASSIGN: "=",
    TokenCode.EQUAL: "==",
    TokenCode.NOTEQ: "!=",
    TokenCode.LESS: "<",
    TokenCode.LESSEQ: "<=",
    TokenCode.GREATER: ">",
    TokenCode.GREATEREQ: ">=",
    TokenCode.ADD: "+",
    TokenCode.SUB: "-",
    TokenCode.MUL: "*",
    TokenCode.DIV: "/",
    TokenCode.DOT: ".",
    TokenCode.AND: "&&",
    TokenCode.OR: "||",
    TokenCode.NOT: "!",
}


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_alpha(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()


def _is_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.tokens: List[Token] = []

    def at(self, index: int) -> str:
        return self.text[index] if index < len(self.text) else "\0"

    def emit(self, code: TokenCode, value: Union[str, int, float, None] = None) -> None:
        self.tokens.append(Token(code, self.line, value))

    def fail(self, message: str) -> CompileError:
        return CompileError(message, self.line)

    def skip_digits(self, index: int) -> int:
        while _is_digit(self.at(index)):
            index += 1
        return index

    def exponent(self, start: int, end: int) -> int:
        end += 1
        if self.at(end) in "+-":
            end += 1
        if not _is_digit(self.at(end)):
            raise self.fail(
                f"Invalid double value missing exponent after e/E at line {self.line}: "
                f"{self.text[start:end]}"
            )
        return self.skip_digits(end)

    def number(self) -> None:
        start = self.pos
        end = self.skip_digits(start + 1)
        is_double = True
        if self.at(end) == ".":
            end += 1
            if not _is_digit(self.at(end)):
                raise self.fail(
                    f"Invalid double value missing digits after . at line {self.line}: "
                    f"{self.text[start:end]}"
                )
            end = self.skip_digits(end)
            if self.at(end) in "eE":
                end = self.exponent(start, end)
        elif self.at(end) in "eE":
            end = self.exponent(start, end)
        else:
            is_double = False
        literal = self.text[start:end]
        if is_double:
            self.emit(TokenCode.DOUBLE, float(literal))
        else:
            self.emit(TokenCode.INT, int(literal))
        self.pos = end

    def char(self) -> None:
        if self.at(self.pos + 1) == "'":
            raise self.fail(f"Missing character at line {self.line}")
        if self.pos + 1 >= len(self.text) or self.at(self.pos + 2) != "'":
            raise self.fail(f"Did not close char at line {self.line}")
        self.emit(TokenCode.CHAR, self.text[self.pos + 1])
        self.pos += 3

    def string(self) -> None:
        start = self.pos + 1
        end = start
        while self.at(end) != '"':
            if self.at(end) == "\0":
                raise self.fail(f"Did not close string at line {self.line}")
            end += 1
        self.emit(TokenCode.STRING, self.text[start:end])
        self.pos = end + 1

    def word(self) -> None:
        start = self.pos
        end = start + 1
        while _is_alnum(self.at(end)) or self.at(end) == "_":
            end += 1
        text = self.text[start:end]
        keyword = _KEYWORDS.get(text)
        if keyword is None:
            self.emit(TokenCode.ID, text)
        else:
            self.emit(keyword)
        self.pos = end

    def run(self) -> List[Token]:
        while True:
            ch = self.at(self.pos)
            nxt = self.at(self.pos + 1)
            if ch in " \t":
                self.pos += 1
            elif ch == "\r" or ch == "\n":
                if ch == "\r" and nxt == "\n":
                    self.pos += 1
                self.line += 1
                self.pos += 1
            elif ch == "\0":
                self.emit(TokenCode.END)
                return self.tokens
            elif ch in _SINGLE:
                self.emit(_SINGLE[ch])
                self.pos += 1
            elif ch == "/":
                if nxt == "/":
                    self.pos += 2
                    while self.at(self.pos) not in "\0\r\n":
                        self.pos += 1
                else:
                    self.emit(TokenCode.DIV)
                    self.pos += 1
            elif ch in _WITH_EQ:
                with_eq, alone = _WITH_EQ[ch]
                if nxt == "=":
                    self.emit(with_eq)
                    self.pos += 2
                else:
                    self.emit(alone)
                    self.pos += 1
            elif ch in _DOUBLED:
                if nxt == ch:
                    self.emit(_DOUBLED[ch])
                    self.pos += 2
                else:
                    self.pos += 1
            elif _is_digit(ch):
                self.number()
            elif ch == "'":
                self.char()
            elif ch == '"':
                self.string()
            elif _is_alpha(ch) or ch == "_":
                self.word()
            else:
                raise self.fail(f"invalid char: {ch} ({ord(ch)})")


def tokenize(text: str) -> List[Token]:
    """Split source text into tokens; the last one is always END."""
    return _Scanner(text).run()


def token_string(token: Token) -> str:
    """Describe a token as its line, a tab and its kind (with value if any)."""
    code = token.code
    if code == TokenCode.ID:
        detail = f"ID: {token.value}"
    elif code == TokenCode.INT:
        detail = f"INT: {token.value}"
    elif code == TokenCode.DOUBLE:
        detail = f"DOUBLE: {token.value:f}"
    elif code == TokenCode.CHAR:
        detail = f"CHAR: {token.value}"
    elif code == TokenCode.STRING:
        detail = f"STRING: {token.value}"
    else:
        detail = code.name
    return f"{token.line}\t{detail}"


def show_tokens(tokens: Iterable[Token], file: TextIO) -> None:
    """Write one description line per token to a text stream."""
    for token in tokens:
        print(token_string(token), file=file)


def token_name(token: Optional[Token]) -> str:
    """Return a short source-like name of a token for error messages."""
    if token is None:
        return "unknown"
    code = token.code
    if code == TokenCode.INT:
        return str(token.value)
    if code == TokenCode.DOUBLE:
        return f"{token.value:f}"
    if code == TokenCode.CHAR:
        return str(token.value)
    if code == TokenCode.STRING:
        return str(token.value)[:1]
    return _NAMES.get(code, "unknown")