"""
Lexical analyzer (tokenizer) for collection query parameters.

Each query parameter (filter, orderby, select) is tokenized on its own;
token positions are 1-based offsets into that parameter's text.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto

from content_collections.query.errors import QuerySyntaxError


class TokenType(Enum):
    """Token types for collection queries."""

    # Logical keywords
    AND = auto()
    OR = auto()
    NOT = auto()

    # Comparison keywords
    EQ = auto()
    NE = auto()
    GT = auto()
    LT = auto()
    GE = auto()
    LE = auto()
    CONTAINS = auto()
    STARTSWITH = auto()
    ENDSWITH = auto()

    # Case-fold functions
    TOLOWER = auto()
    TOUPPER = auto()

    # Sort keywords
    ASC = auto()
    DESC = auto()

    # Literals
    STRING = auto()
    NUMBER = auto()
    BOOLEAN = auto()

    # Identifiers
    IDENTIFIER = auto()

    # Punctuation
    COMMA = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()

    # Special
    EOF = auto()


@dataclass
class Token:
    """A token in a query parameter."""

    type: TokenType
    value: str
    position: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.position})"


COMPARISON_TOKENS = {
    TokenType.EQ,
    TokenType.NE,
    TokenType.GT,
    TokenType.LT,
    TokenType.GE,
    TokenType.LE,
    TokenType.CONTAINS,
    TokenType.STARTSWITH,
    TokenType.ENDSWITH,
}

_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?([eE][+-]?\d+)?")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")


class QueryLexer:
    """Tokenizer for collection query parameters."""

    KEYWORDS = {
        "and": TokenType.AND,
        "or": TokenType.OR,
        "not": TokenType.NOT,
        "eq": TokenType.EQ,
        "ne": TokenType.NE,
        "gt": TokenType.GT,
        "lt": TokenType.LT,
        "ge": TokenType.GE,
        "le": TokenType.LE,
        "contains": TokenType.CONTAINS,
        "startswith": TokenType.STARTSWITH,
        "endswith": TokenType.ENDSWITH,
        "tolower": TokenType.TOLOWER,
        "toupper": TokenType.TOUPPER,
        "asc": TokenType.ASC,
        "desc": TokenType.DESC,
        "true": TokenType.BOOLEAN,
        "false": TokenType.BOOLEAN,
    }

    PUNCTUATION = {
        ",": TokenType.COMMA,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "[": TokenType.LBRACKET,
        "]": TokenType.RBRACKET,
    }

    def __init__(self, text: str, parameter: str = "filter"):
        self.text = text
        self.parameter = parameter
        self.pos = 0
        self.tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the entire input."""
        while self.pos < len(self.text):
            self._skip_whitespace()
            if self.pos >= len(self.text):
                break

            if not self._try_tokenize_one():
                raise QuerySyntaxError(
                    f"Unexpected character '{self.text[self.pos]}'",
                    parameter=self.parameter,
                    position=self.pos + 1,
                    fragment=self.text[self.pos : self.pos + 10],
                )

        self.tokens.append(Token(TokenType.EOF, "", len(self.text) + 1))
        return self.tokens

    def _try_tokenize_one(self) -> bool:
        """Try to tokenize one token. Returns True if successful."""
        return (
            self._match_string()
            or self._match_number()
            or self._match_identifier()
            or self._match_punctuation()
        )

    def _skip_whitespace(self):
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _match_string(self) -> bool:
        """Match single-quoted string literals; '' is an escaped quote."""
        if self.text[self.pos] != "'":
            return False

        start = self.pos
        self.pos += 1
        value = []
        while True:
            if self.pos >= len(self.text):
                raise QuerySyntaxError(
                    "Unterminated string literal",
                    parameter=self.parameter,
                    position=start + 1,
                    fragment=self.text[start : start + 10],
                )
            char = self.text[self.pos]
            if char == "'":
                if self.pos + 1 < len(self.text) and self.text[self.pos + 1] == "'":
                    value.append("'")
                    self.pos += 2
                    continue
                self.pos += 1
                break
            value.append(char)
            self.pos += 1

        self.tokens.append(Token(TokenType.STRING, "".join(value), start + 1))
        return True

    def _match_number(self) -> bool:
        """Match numeric literals, including a leading minus sign and exponent."""
        match = _NUMBER_RE.match(self.text, self.pos)
        if not match:
            return False

        # "3abc" is not a number followed by an identifier
        end = match.end()
        if end < len(self.text) and (self.text[end].isalpha() or self.text[end] == "_"):
            return False

        self.tokens.append(Token(TokenType.NUMBER, match.group(0), self.pos + 1))
        self.pos = end
        return True

    def _match_identifier(self) -> bool:
        """Match identifiers and keywords (keywords are case-insensitive)."""
        match = _IDENTIFIER_RE.match(self.text, self.pos)
        if not match:
            return False

        value = match.group(0)
        token_type = self.KEYWORDS.get(value.lower(), TokenType.IDENTIFIER)
        if token_type != TokenType.IDENTIFIER:
            value = value.lower()
        self.tokens.append(Token(token_type, value, self.pos + 1))
        self.pos = match.end()
        return True

    def _match_punctuation(self) -> bool:
        token_type = self.PUNCTUATION.get(self.text[self.pos])
        if token_type is None:
            return False
        self.tokens.append(Token(token_type, self.text[self.pos], self.pos + 1))
        self.pos += 1
        return True
