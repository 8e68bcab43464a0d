"""
Quill Lexer - Tokenizes Quill source code into a stream of tokens

This module handles lexical analysis of Quill source code, converting the raw
text into tokens that the parser can work with. The stream always starts with
a synthetic ENTRY token and ends with an EOF token.

Token Types:
    Keywords: exit, for, in, to
    Types: i32, f32, bool
    Literals: INTEGER, FLOAT, BOOL (true / false)
    Identifiers: variable names
    Operators: +, -, *, /, =, ==, !=, <, >, <=, >=
    Punctuation: (, ), {, }, ;
    Special: ENTRY, EOF
"""

from dataclasses import dataclass
from typing import Optional, List

from .errors import LexicalError


@dataclass(frozen=True)
class Token:
    """Represents a single token in the source code"""
    type: str  # Token type (e.g., 'INTEGER', 'PLUS', 'IDENTIFIER')
    value: Optional[str] = None  # Literal text, only for literals and identifiers
    line: int = 0
    column: int = 0

    def __repr__(self):
        if self.value is not None:
            return f"Token({self.type}, '{self.value}', line={self.line})"
        return f"Token({self.type}, line={self.line})"


# Keyword mapping
KEYWORDS = {
    'exit': 'EXIT',
    'i32': 'I32',
    'f32': 'F32',
    'bool': 'BOOL_TYPE',
    'true': 'BOOL',
    'false': 'BOOL',
    'for': 'FOR',
    'in': 'IN',
    'to': 'TO',
}

# Tokens that keep their source text as payload
VALUED_TOKENS = {'INTEGER', 'FLOAT', 'BOOL', 'IDENTIFIER'}

SINGLE_CHAR_TOKENS = {
    ';': 'SEMICOLON',
    '=': 'ASSIGN',
    '<': 'LT',
    '>': 'GT',
    '+': 'PLUS',
    '-': 'MINUS',
    '*': 'STAR',
    '/': 'SLASH',
    '(': 'LPAREN',
    ')': 'RPAREN',
    '{': 'LBRACE',
    '}': 'RBRACE',
}

TWO_CHAR_TOKENS = {
    '==': 'EQ',
    '!=': 'NE',
    '<=': 'LE',
    '>=': 'GE',
}


def is_digit(char: str) -> bool:
    return char.isascii() and char.isdigit()


def is_letter(char: str) -> bool:
    return char.isascii() and char.isalpha()


class Lexer:
    """
    Lexical analyzer for Quill source code

    Scanning is longest-match, left to right, with one character of
    lookahead and no backtracking. Any character that cannot start a token
    raises LexicalError.
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1
        self.length = len(source)

    def peek(self, offset: int = 0) -> str:
        """
        Look ahead at a character without consuming it

        Args:
            offset: Number of characters to look ahead (0 = current char)

        Returns:
            The character at the specified position, or '' if out of bounds
        """
        pos = self.position + offset
        return self.source[pos] if pos < self.length else ''

    def advance(self, count: int = 1):
        """Move forward in the source, tracking line and column"""
        for _ in range(count):
            if self.position >= self.length:
                break
            char = self.source[self.position]
            if char == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.position += 1

    def skip_whitespace_and_comments(self):
        """Skip whitespace, newlines and // line comments"""
        while self.position < self.length:
            char = self.peek()
            if char.isspace():
                self.advance()
            elif char == '/' and self.peek(1) == '/':
                self.advance(2)
                while self.position < self.length and self.peek() != '\n':
                    self.advance()
            else:
                break

    def scan_number(self) -> tuple:
        """
        Scan an integer or float literal

        A dot only belongs to the number when at least one digit follows it.

        Returns:
            Tuple of (is_float, text)
        """
        start_pos = self.position
        while is_digit(self.peek()):
            self.advance()

        is_float = False
        if self.peek() == '.' and is_digit(self.peek(1)):
            is_float = True
            self.advance()
            while is_digit(self.peek()):
                self.advance()

        return is_float, self.source[start_pos:self.position]

    def scan_identifier(self) -> str:
        """Scan an identifier or keyword"""
        start_pos = self.position
        while self.position < self.length:
            char = self.peek()
            if not (is_letter(char) or is_digit(char) or char == '_'):
                break
            self.advance()
        return self.source[start_pos:self.position]

    def next_token(self) -> Token:
        """
        Get the next token from the source

        Returns:
            The next Token object, EOF once the input is exhausted
        """
        self.skip_whitespace_and_comments()

        if self.position >= self.length:
            return Token('EOF', line=self.line, column=self.column)

        char = self.peek()
        line = self.line
        column = self.column

        if is_digit(char):
            is_float, text = self.scan_number()
            return Token('FLOAT' if is_float else 'INTEGER', text, line=line, column=column)

        if is_letter(char):
            ident = self.scan_identifier()
            token_type = KEYWORDS.get(ident, 'IDENTIFIER')
            value = ident if token_type in VALUED_TOKENS else None
            return Token(token_type, value, line=line, column=column)

        two_char = char + self.peek(1)
        if two_char in TWO_CHAR_TOKENS:
            self.advance(2)
            return Token(TWO_CHAR_TOKENS[two_char], line=line, column=column)

        if char == '!':
            raise LexicalError("Expected '=' after '!'", line, column)

        if char in SINGLE_CHAR_TOKENS:
            self.advance()
            return Token(SINGLE_CHAR_TOKENS[char], line=line, column=column)

        raise LexicalError(f"Unexpected character '{char}'", line, column)

    def tokenize(self) -> List[Token]:
        """
        Tokenize the entire source code

        Returns:
            ENTRY, the source tokens in order, then EOF
        """
        tokens = [Token('ENTRY', line=1, column=1)]
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type == 'EOF':
                break
        return tokens


def tokenize(source: str) -> List[Token]:
    """
    Convenience function to tokenize source code

    Args:
        source: Quill source code

    Returns:
        List of tokens
    """
    lexer = Lexer(source)
    return lexer.tokenize()
